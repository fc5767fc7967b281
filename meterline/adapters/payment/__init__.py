"""Payment gateway adapters: Stripe, Null and Fake implementations."""
