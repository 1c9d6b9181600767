"""Orders domain - Checkout, payments, fulfilment and returns"""
