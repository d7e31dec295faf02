pytest_plugins = "test_fixtures"
