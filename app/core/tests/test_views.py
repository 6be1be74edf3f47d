"""Tests for the health check endpoint."""

import pytest
from django.db import DatabaseError
from django.urls import reverse


@pytest.mark.django_db
class TestHealthCheck:
    def test_healthy(self, client):
        response = client.get(reverse("health_check"))

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
        }

    def test_cache_outage_is_degraded(self, client, mocker):
        cache = mocker.patch("core.views.cache")
        cache.set.side_effect = ConnectionError("redis down")

        response = client.get(reverse("health_check"))

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["cache"] == "disconnected"

    def test_database_outage_is_unhealthy(self, client, mocker):
        connection = mocker.patch("core.views.connection")
        connection.cursor.side_effect = DatabaseError("connection refused")

        response = client.get(reverse("health_check"))

        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"

    def test_post_not_allowed(self, client):
        assert client.post(reverse("health_check")).status_code == 405
