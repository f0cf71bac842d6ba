"""
Customer Segmentation Test Suite

This package contains tests for the segmentation engine:
- Unit tests for individual components
- Integration tests for complete workflows
- Edge case tests for boundary conditions

Run tests with:
    pytest tests/                    # All tests
    pytest tests/ -v                 # Verbose output
    pytest tests/ -m unit            # Only unit tests
    pytest tests/ --cov=customer_segmentation  # With coverage
"""
