# rsatrace Test Suite
"""
Test suite including:
- Unit tests (number theory, trace model, RSA)
- Integration tests (PEM, CLI)
- Security tests (textbook RSA properties, invalid inputs)

Run with: pytest
"""
