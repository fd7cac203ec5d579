"""
integrations — read-only REST fetchers for the linked providers.

Each module takes an access token (or an authorised API client), calls the
provider and reshapes the response into the camelCase JSON the dashboard
front end renders.  Failures surface as ``integrations.errors`` exceptions.
"""
