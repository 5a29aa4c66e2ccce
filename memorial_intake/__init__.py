"""
Sears Melvin Memorials lead intake: website enquiries and quote requests fanned
out to email, ClickUp, Supabase, GoHighLevel and Stripe.
"""

__version__ = "1.0.0"
