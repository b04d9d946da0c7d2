"""
ATS Tests Package

Test Modules:
- test_models.py: requirement scope and immutability rules, application
  uniqueness, candidate and job variant helpers
- test_services.py: ApplicationService (creation, fit-score updates,
  synchronous scoring, batch re-scoring)

Running Tests:
    # Run all ATS tests
    pytest ats/tests/ -v
"""
