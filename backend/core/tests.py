from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APIClient

from core.models import History, Setting
from core.services import SettingsStore, default_ledger_settings, record_history
from ledger.dataclasses import DEFAULT_CONSTANTS


class SettingsStoreTests(TestCase):
    def test_defaults_when_table_is_empty(self):
        self.assertEqual(SettingsStore().ledger_constants(), DEFAULT_CONSTANTS)

    def test_overrides_and_ignores_junk(self):
        store = SettingsStore()
        store.upsert("bakery_profit_pct", "0.2")
        store.upsert("expiry_tax_factor", "abc")
        store.upsert("unrelated", {"x": 1})
        constants = store.ledger_constants()
        self.assertEqual(constants.bakery_profit_pct, Decimal("0.2"))
        self.assertEqual(constants.expiry_tax_factor, DEFAULT_CONSTANTS.expiry_tax_factor)
        self.assertEqual(store.get("unrelated"), {"x": 1})
        self.assertIsNone(store.get("missing"))

    def test_upsert_updates_in_place(self):
        store = SettingsStore()
        store.upsert("grand_markup_pct", "0.05")
        store.upsert("grand_markup_pct", "0.07")
        self.assertEqual(Setting.objects.filter(key="grand_markup_pct").count(), 1)
        self.assertEqual(store.ledger_constants().grand_markup, Decimal("0.07"))

    def test_seed_command_is_idempotent(self):
        call_command("seed_ledger_settings", verbosity=0)
        Setting.objects.filter(key="fresh_reduction_pct").update(value="0.2")
        call_command("seed_ledger_settings", verbosity=0)
        self.assertEqual(Setting.objects.count(), len(default_ledger_settings()))
        self.assertEqual(Setting.objects.get(key="fresh_reduction_pct").value, "0.2")
        call_command("seed_ledger_settings", "--overwrite", verbosity=0)
        self.assertEqual(Setting.objects.get(key="fresh_reduction_pct").value, "0.115")


class SettingsAndHistoryApiTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.staff = User.objects.create_user(username="staff", password="pass", role="staff")
        self.admin = User.objects.create_user(username="admin", password="pass", role="admin")
        self.root = User.objects.create_user(username="root", password="pass", role="super_admin")
        self.client = APIClient()

    def test_settings_require_admin_role(self):
        self.client.force_authenticate(user=self.staff)
        self.assertEqual(self.client.get("/api/settings/").status_code, 403)

    def test_admin_reads_defaults_and_upserts(self):
        self.client.force_authenticate(user=self.admin)
        resp = self.client.get("/api/settings/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["defaults"]["fresh_reduction_pct"], "0.115")

        resp = self.client.post("/api/settings/", {"key": "fresh_reduction_pct", "value": "0.12"}, format="json")
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertEqual(resp.json()["created_by"], "admin")
        resp = self.client.post("/api/settings/", {"key": "fresh_reduction_pct", "value": "0.13"}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(SettingsStore().ledger_constants().fresh_reduction, Decimal("0.13"))
        self.assertNotIn("fresh_reduction_pct", self.client.get("/api/settings/").json()["defaults"])

        resp = self.client.post("/api/settings/", {"key": "grand_markup_pct", "value": "lots"}, format="json")
        self.assertEqual(resp.status_code, 400)

    def test_history_is_super_admin_only_and_filterable(self):
        record_history("dailyTrips", 1, "create", actor=self.admin, after={"balance": Decimal("10")})
        record_history("dailyTrips", 1, "update", before={"balance": "10"}, after={"balance": "12"})
        record_history("employees", "EMP-001", "update")

        self.client.force_authenticate(user=self.admin)
        self.assertEqual(self.client.get("/api/histories/").status_code, 403)

        self.client.force_authenticate(user=self.root)
        resp = self.client.get("/api/histories/", {"collection": "dailyTrips", "document_id": "1"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["count"], 2)
        self.assertEqual({row["action"] for row in body["results"]}, {"create", "update"})
        resp = self.client.get("/api/histories/", {"action": "create"})
        self.assertEqual(resp.json()["results"][0]["actor"], "admin")
        self.assertEqual(History.objects.count(), 3)


class CommandTests(TestCase):
    def test_bootstrap_dev_creates_super_admin_with_token(self):
        call_command("bootstrap_dev", verbosity=0)
        call_command("bootstrap_dev", verbosity=0)
        user = get_user_model().objects.get(username="ledger-admin")
        self.assertEqual(user.role, "super_admin")
        self.assertTrue(user.auth_token.key)

    def test_create_test_users(self):
        call_command("create_test_users", verbosity=0)
        roles = set(get_user_model().objects.values_list("role", flat=True))
        self.assertEqual(roles, {"staff", "admin", "super_admin"})

    def test_token_login(self):
        get_user_model().objects.create_user(username="clerk", password="s3cret-pass", role="staff")
        client = APIClient()
        resp = client.post("/api/auth/token/", {"username": "clerk", "password": "s3cret-pass"}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["role"], "staff")
        token = resp.json()["token"]
        client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
        self.assertEqual(client.get("/api/daily-trips/").status_code, 200)
        self.assertEqual(
            APIClient().post("/api/auth/token/", {"username": "clerk", "password": "nope"}, format="json").status_code,
            401,
        )
