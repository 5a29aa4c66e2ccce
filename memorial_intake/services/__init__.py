"""
Services package: money model, document rendering, provider adapters,
orchestration and the payment callback handler.
"""
