"""Shared test data for linecalc tests."""
