"""
Booking flow explorer.

Crawls a site, detects booking entry points, drives each booking flow up to
(never into) payment, and scrapes the packages a booking widget offers.

Entry point for programmatic use: `booking_explorer.runner.run_exploration`.
"""
