"""
                Tiffin Ordering Service

Backend for a meal-subscription (tiffin) business: meal-plan pricing,
order intake, UPI deep links and Razorpay payment links, and signed
payment-callback reconciliation.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
