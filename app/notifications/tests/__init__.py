"""Tests for stored notifications and NotificationService."""
