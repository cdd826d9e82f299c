"""
FastAPI Application Entry Point

Tiffin Ordering Service - order intake, pricing and payment confirmation
for a home tiffin kitchen. Supports Mock services (development) and the
Razorpay API (staging/production).

Endpoints:
    - GET /menu, /delivery/fee, /quote: Pricing
    - POST /orders, GET /orders/{id}: Order placement and polling
    - POST /admin/login, GET /admin/orders, POST /admin/orders/{id}/status: Kitchen admin
    - POST /payments/create_link: Hosted payment link
    - GET /payments/webhook: Payment link callback redirect
    - POST /payments/razorpay-webhook: Razorpay dashboard webhook
    - GET /health: System health check

Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional
from urllib.parse import urlencode

from fastapi import FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from tiffin.core.config import Settings, get_settings, setup_logging
from tiffin.core.errors import TiffinError, Unauthorized
from tiffin.models import CustomerInfo, Order
from tiffin.schemas import (
    AdminLoginRequest,
    DeliveryFeeResponse,
    ErrorResponse,
    HealthResponse,
    OkResponse,
    OrderCreate,
    OrderCreateResponse,
    PaymentLinkCreate,
    PaymentLinkCustomer,
    PaymentLinkResponse,
    QuoteResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from tiffin.services import Services, build_services
from tiffin.services.payment import CustomerDetails, PaymentMethod
from tiffin.services.verification import CallbackSource, RedirectConfirmation, WebhookEvent

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_services(request: Request) -> Services:
    return request.app.state.services


def callback_url(request: Request, order_id: str) -> str:
    """Where the payment page sends the customer back after paying."""
    settings = get_services(request).settings
    base = (settings.app_base_url or str(request.base_url)).rstrip("/")
    return f"{base}/payments/webhook?{urlencode({'orderId': order_id})}"


def with_customer(order: Order, customer: Optional[PaymentLinkCustomer]) -> Order:
    """Copy of ``order`` with non-empty request customer fields laid over its own."""
    if customer is None:
        return order
    merged = order.customer.model_dump() if order.customer else {}
    merged.update({k: v for k, v in customer.model_dump().items() if v})
    return order.model_copy(update={"customer": CustomerInfo(**merged)})


def require_admin(services: Services, pin: Optional[str]) -> None:
    if not services.admin.authenticate(pin):
        logger.warning("Admin request rejected: bad PIN")
        raise Unauthorized("Invalid admin PIN")


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (defaults to ``get_settings()``)
        services: Prebuilt services, e.g. an in-memory store for tests
    """
    settings = settings or (services.settings if services else get_settings())
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application startup and shutdown events.
        """
        logger.info("=" * 60)
        logger.info(f"🚀 Starting {settings.app_name}")
        logger.info(f"   Version: {settings.app_version}")
        logger.info(f"   Environment: {settings.env_mode.value}")
        logger.info(f"   Debug: {settings.debug}")
        logger.info("=" * 60)

        await services.startup()
        logger.info(f"✅ Order Store: {services.store.provider_name}")
        logger.info(f"✅ Payment Service: {services.link_service.provider_name}")

        if settings.use_real_services:
            missing = settings.validate_production_config()
            if missing:
                logger.warning(f"⚠️ Missing production config: {missing}")

        logger.info("✅ Application ready!")
        logger.info("=" * 60)

        yield

        logger.info("Shutting down...")
        await services.shutdown()
        logger.info("✅ Cleanup complete")

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Tiffin ordering API: server-side pricing, UPI and hosted payment "
            "links, signed payment confirmation and kitchen order tracking."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app, settings)
    register_routes(app)
    return app


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def register_error_handlers(app: FastAPI, settings: Settings) -> None:

    @app.exception_handler(TiffinError)
    async def tiffin_error_handler(request: Request, exc: TiffinError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.error} - {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={
                "ok": False,
                "error": "validation_error",
                "message": "Invalid request",
                "detail": errors,
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler."""
        logger.exception(f"Unhandled exception: {exc}")

        content: dict[str, Any] = {
            "ok": False,
            "error": "server_error",
            "message": "An unexpected error occurred",
        }
        if settings.debug:
            content["detail"] = str(exc)
        return JSONResponse(status_code=500, content=content)


# =============================================================================
# ROUTES
# =============================================================================

def register_routes(app: FastAPI) -> None:

    # -------------------------------------------------------------------------
    # Root & health
    # -------------------------------------------------------------------------

    @app.get("/", tags=["Root"])
    async def root(request: Request) -> dict[str, Any]:
        """API root."""
        settings = get_services(request).settings
        return {
            "ok": True,
            "name": settings.business_name,
            "version": settings.app_version,
            "environment": settings.env_mode.value,
            "documentation": "/docs",
        }

    @app.get(
        "/health",
        response_model=HealthResponse,
        response_model_by_alias=True,
        tags=["Health"],
        summary="System Health Check",
    )
    async def health_check(request: Request) -> HealthResponse:
        """Verify the order store and payment provider are usable."""
        services = get_services(request)
        store_ok = await services.store.health_check()
        payment_ok = await services.link_service.health_check()

        return HealthResponse(
            ok=store_ok,
            status="operational" if store_ok and payment_ok else "degraded",
            store=services.store.provider_name,
            payment_provider=services.link_service.provider_name,
        )

    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------

    @app.get("/menu", tags=["Pricing"])
    async def menu(request: Request) -> dict[str, Any]:
        return get_services(request).pricing.menu()

    @app.get("/delivery/fee", response_model=DeliveryFeeResponse, tags=["Pricing"])
    async def delivery_fee(request: Request, km: float = Query(0.0)) -> DeliveryFeeResponse:
        """Delivery fee for a distance. Negative distances are treated as 0."""
        # NaN fails every comparison and is rejected by the engine
        if km < 0:
            km = 0.0
        return DeliveryFeeResponse(km=km, fee=get_services(request).pricing.delivery_fee(km))

    @app.get(
        "/quote",
        response_model=QuoteResponse,
        response_model_by_alias=True,
        responses=ERROR_RESPONSES,
        tags=["Pricing"],
    )
    async def quote(
        request: Request,
        plan_type: str = Query(..., alias="type"),
        qty: int = Query(1),
        km: float = Query(0.0),
    ) -> QuoteResponse:
        result = get_services(request).pricing.quote(plan_type, qty, km)
        return QuoteResponse(**result.to_dict())

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    @app.post(
        "/orders",
        response_model=OrderCreateResponse,
        response_model_by_alias=True,
        responses=ERROR_RESPONSES,
        tags=["Orders"],
        summary="Place Order",
    )
    async def create_order(request: Request, order_data: OrderCreate) -> OrderCreateResponse:
        """
        Price and store a new order, then return how to pay for it.

        Prices always come from the server-side pricing table. The order
        starts in ``pending_payment`` and only a verified payment callback
        moves it to ``paid``.
        """
        services = get_services(request)
        priced = services.pricing.quote(order_data.plan_type, order_data.qty, order_data.distance_km)

        order = Order(
            mobile=order_data.mobile,
            customer=order_data.customer,
            plan_type=order_data.plan_type,
            qty=order_data.qty,
            distance_km=order_data.distance_km,
            note=order_data.note,
            unit_price=priced.unit_price,
            delivery_fee=priced.delivery_fee,
            amount=priced.amount,
        )
        order_id = await services.store.create(order)
        order = await services.store.get(order_id)
        logger.info(
            f"Order #{order_id} created: {order.plan_type.value} x{order.qty}, "
            f"amount={order.amount}"
        )

        try:
            payable = await services.issuer.issue(
                order,
                order_data.payment_method,
                callback_url=callback_url(request, order_id),
            )
        except TiffinError as exc:
            # The order is stored; hand its id back so the client can retry the link
            logger.warning(f"Payment issue failed for Order #{order_id}: {exc.error}")
            exc.detail = {"orderId": order_id, "provider": exc.detail}
            raise

        return OrderCreateResponse(order=order.to_public(), payment=payable.to_dict())

    @app.get("/orders/{order_id}", tags=["Orders"], responses={404: {"model": ErrorResponse}})
    async def get_order(request: Request, order_id: str) -> dict[str, Any]:
        """Get a specific order by ID, used by the app to poll payment status."""
        order = await get_services(request).store.get(order_id)
        return order.to_public()

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    @app.post("/admin/login", response_model=OkResponse, tags=["Admin"])
    async def admin_login(request: Request, body: AdminLoginRequest) -> OkResponse:
        return OkResponse(ok=get_services(request).admin.authenticate(body.pin))

    @app.get("/admin/orders", tags=["Admin"], responses={401: {"model": ErrorResponse}})
    async def admin_orders(
        request: Request,
        x_admin_pin: Optional[str] = Header(None, alias="X-Admin-Pin"),
    ) -> list[dict[str, Any]]:
        """All orders, most recent first."""
        services = get_services(request)
        require_admin(services, x_admin_pin)
        return [order.to_public() for order in await services.admin.list_orders()]

    @app.post(
        "/admin/orders/{order_id}/status",
        response_model=StatusUpdateResponse,
        tags=["Admin"],
        responses={
            401: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
        },
    )
    async def admin_set_status(
        request: Request,
        order_id: str,
        body: StatusUpdateRequest,
        x_admin_pin: Optional[str] = Header(None, alias="X-Admin-Pin"),
    ) -> StatusUpdateResponse:
        services = get_services(request)
        require_admin(services, x_admin_pin or body.pin)
        order = await services.admin.set_status(order_id, body.status)
        return StatusUpdateResponse(order=order.to_public())

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    @app.post(
        "/payments/create_link",
        response_model=PaymentLinkResponse,
        responses=ERROR_RESPONSES,
        tags=["Payments"],
        summary="Create Hosted Payment Link",
    )
    async def create_payment_link(
        request: Request, body: PaymentLinkCreate
    ) -> PaymentLinkResponse:
        """
        Create a hosted payment link.

        With ``orderId`` the stored order is charged its own amount and the
        link is tied to it for confirmation; otherwise ``amount`` and
        ``customer`` are required.
        """
        services = get_services(request)

        if body.order_id:
            order = with_customer(await services.store.get(body.order_id), body.customer)
            payable = await services.issuer.issue(
                order,
                PaymentMethod.PAYMENT_LINK,
                callback_url=callback_url(request, order.id),
                description=body.description,
            )
        else:
            customer = (
                CustomerDetails(**body.customer.model_dump()) if body.customer else None
            )
            payable = await services.issuer.create_standalone_link(
                amount=body.amount,
                customer=customer,
                description=body.description,
            )

        return PaymentLinkResponse(url=payable.url)

    @app.get("/payments/webhook", response_class=PlainTextResponse, tags=["Payments"])
    async def payment_redirect(request: Request) -> PlainTextResponse:
        """
        Callback redirect after a payment link is paid.

        Answers in plain text: ``OK`` once verified (including repeats),
        400 for a bad signature, 500 when the key secret is missing.
        """
        source = RedirectConfirmation.from_query(request.query_params)
        return await _confirm(get_services(request), source)

    @app.post("/payments/razorpay-webhook", response_class=PlainTextResponse, tags=["Payments"])
    async def razorpay_webhook(
        request: Request,
        x_razorpay_signature: Optional[str] = Header(None, alias="x-razorpay-signature"),
    ) -> PlainTextResponse:
        """
        Razorpay dashboard webhook.

        The signature covers the exact raw body, so it is read before any
        JSON parsing.
        """
        body = await request.body()
        source = WebhookEvent(body=body, signature=x_razorpay_signature)
        return await _confirm(get_services(request), source)


async def _confirm(services: Services, source: CallbackSource) -> PlainTextResponse:
    try:
        result = await services.verifier.verify_callback(source)
    except TiffinError as exc:
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    logger.debug(f"Payment callback processed: {result.to_dict()}")
    return PlainTextResponse("OK")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "tiffin.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
