"""Core domain package for pushrules.

Core contains rule parsing, condition evaluation, matching and dispatch logic
without any HTTP or presentation-specific code, keeping the business logic
portable.
"""
