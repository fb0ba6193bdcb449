"""
Services package for the scheduler webhook service.
"""
