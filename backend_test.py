import os
import sys
from datetime import datetime

import requests


class AlumniCircleAPITester:
    """Smoke test a running deployment over HTTP."""

    def __init__(self, base_url=None):
        self.base_url = (base_url or os.environ.get("API_BASE_URL", "http://localhost:8000/api")).rstrip("/")
        self.admin_token = None
        self.tests_run = 0
        self.tests_passed = 0
        self.test_results = []

    def log_test(self, name, success, details=""):
        self.tests_run += 1
        if success:
            self.tests_passed += 1
            print(f"[PASS] {name}")
        else:
            print(f"[FAIL] {name} - {details}")
        self.test_results.append({"test": name, "success": success, "details": details})

    def run_test(self, name, method, endpoint, expected_status, data=None, headers=None, params=None):
        url = f"{self.base_url}/{endpoint}"
        try:
            response = requests.request(method, url, json=data, headers=headers or {}, params=params, timeout=15)
        except requests.RequestException as exc:
            self.log_test(name, False, f"Exception: {exc}")
            return False, {}

        success = response.status_code == expected_status
        details = f"Status: {response.status_code}"
        body = {}
        if response.headers.get("content-type", "").startswith("application/json"):
            body = response.json()
        if not success:
            details += f", Error: {body.get('detail', response.text[:100]) if isinstance(body, dict) else response.text[:100]}"
        self.log_test(name, success, details)
        return success, body

    def _auth(self):
        return {"Authorization": f"Bearer {self.admin_token}"}

    def test_health(self):
        print("\nHealth")
        self.run_test("Health check", "GET", "health", 200)

    def test_public_events(self):
        print("\nPublic events")
        success, events = self.run_test("Public event list", "GET", "public/events", 200)
        if success and events:
            self.run_test("Public event detail", "GET", f"public/events/{events[0]['id']}", 200)
        self.run_test("Unknown public event", "GET", "public/events/999999", 404)

    def test_registration_requires_verification(self):
        print("\nEmail registration")
        stamp = datetime.now().strftime("%H%M%S%f")
        email = f"smoke{stamp}@example.com"
        password = "Smoke1234"
        self.run_test(
            "Register with email",
            "POST",
            "auth/register",
            201,
            {"name": f"Smoke {stamp}", "email": email, "password": password},
        )
        success, body = self.run_test(
            "Login before verification",
            "POST",
            "auth/login",
            403,
            {"email": email, "password": password},
        )
        if success:
            self.log_test("Verification error code", body.get("code") == "auth/email-not-verified", str(body))
        self.run_test(
            "Duplicate registration",
            "POST",
            "auth/register",
            409,
            {"name": f"Smoke {stamp}", "email": email, "password": password},
        )

    def test_admin_login(self):
        print("\nAdmin")
        email = os.environ.get("SUPER_ADMIN_EMAIL")
        password = os.environ.get("SUPER_ADMIN_PASSWORD")
        if not email or not password:
            print("   SUPER_ADMIN_EMAIL/SUPER_ADMIN_PASSWORD not set, skipping admin checks")
            return False
        success, body = self.run_test("Admin login", "POST", "auth/login", 200, {"email": email, "password": password})
        if success and "access_token" in body:
            self.admin_token = body["access_token"]
            return True
        return False

    def test_admin_dashboard(self):
        self.run_test("User stats", "GET", "admin/users/stats", 200, headers=self._auth())
        self.run_test("Event stats", "GET", "admin/events/stats", 200, headers=self._auth())
        self.run_test("Pending users", "GET", "admin/users/pending", 200, headers=self._auth())
        self.run_test("Activity logs", "GET", "admin/activity-logs", 200, headers=self._auth())
        self.run_test("Archived events", "GET", "admin/archived-events", 200, headers=self._auth())

    def run_all_tests(self):
        print(f"Testing against: {self.base_url}")
        self.test_health()
        self.test_public_events()
        self.test_registration_requires_verification()
        if self.test_admin_login():
            self.test_admin_dashboard()
        return self.print_summary()

    def print_summary(self):
        print("\nSummary")
        print(f"Tests run: {self.tests_run}")
        print(f"Tests passed: {self.tests_passed}")
        if self.tests_run:
            print(f"Success rate: {(self.tests_passed / self.tests_run * 100):.1f}%")
        for result in self.test_results:
            if not result["success"]:
                print(f"  - {result['test']}: {result['details']}")
        return self.tests_passed == self.tests_run


def main():
    tester = AlumniCircleAPITester(sys.argv[1] if len(sys.argv) > 1 else None)
    return 0 if tester.run_all_tests() else 1


if __name__ == "__main__":
    sys.exit(main())
