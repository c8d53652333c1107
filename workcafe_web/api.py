from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional, Dict
import requests


@dataclass
class APIError(Exception):
    status_code: int
    message: str
    details: Any = None


def _clean(params: dict) -> dict:
    return {k: v for k, v in params.items() if v not in (None, "", [])}


class WorkCafeAPI:
    def __init__(self, base_url: str, token_getter, *, timeout: float = 20):
        self.base_url = base_url.rstrip("/")
        self.token_getter = token_getter
        self.timeout = timeout

    def _headers(self, auth: bool) -> Dict[str, str]:
        h = {"Accept": "application/json"}
        if auth:
            token = self.token_getter()
            if token:
                h["Authorization"] = f"Bearer {token}"
        return h

    def request(self, method: str, path: str, *, auth: bool = True,
                params: Optional[dict] = None,
                json: Optional[dict] = None,
                data: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(
                method=method.upper(),
                url=url,
                headers=self._headers(auth),
                params=params,
                json=json,
                data=data,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise APIError(503, f"API unavailable: {e.__class__.__name__}") from e

        # JSON is expected but not guaranteed (e.g. proxy error pages)
        try:
            payload = resp.json()
        except ValueError:
            payload = resp.text

        if resp.status_code >= 400:
            msg = None
            if isinstance(payload, dict):
                msg = payload.get("detail") or payload.get("message")
                errors = payload.get("errors")
                if errors:
                    msg = "; ".join(f"{e.get('field')}: {e.get('message')}" for e in errors)
            raise APIError(resp.status_code, msg or f"HTTP {resp.status_code}", payload)

        return payload

    # --- Auth ---
    def register(self, username: str, email: str, password: str,
                 first_name: str | None = None, last_name: str | None = None) -> Any:
        body = _clean({
            "username": username,
            "email": email,
            "password": password,
            "first_name": first_name,
            "last_name": last_name,
        })
        return self.request("POST", "/api/users/register", auth=False, json=body)

    def login(self, email: str, password: str) -> str:
        payload = self.request("POST", "/api/users/login", auth=False, json={"email": email, "password": password})
        if isinstance(payload, dict):
            return payload.get("access_token") or ""
        return ""

    # --- Profile ---
    def me(self) -> Any:
        return self.request("GET", "/api/users/me")

    def update_me(self, **fields) -> Any:
        return self.request("PUT", "/api/users/me", json=fields)

    def favorites(self, page: int = 1) -> Any:
        return self.request("GET", "/api/users/me/favorites", params={"page": page})

    def add_favorite(self, cafe_id: int | str) -> Any:
        return self.request("POST", f"/api/users/me/favorites/{cafe_id}")

    def remove_favorite(self, cafe_id: int | str) -> Any:
        return self.request("DELETE", f"/api/users/me/favorites/{cafe_id}")

    def my_check_ins(self, page: int = 1) -> Any:
        return self.request("GET", "/api/users/me/check-ins", params={"page": page})

    def check_out(self) -> Any:
        return self.request("POST", "/api/users/me/check-out")

    # --- Cafes / Reviews / Check-ins ---
    def cafes(self, page: int = 1) -> Any:
        return self.request("GET", "/api/cafes", auth=False, params={"page": page})

    def search_cafes(self, **filters) -> Any:
        return self.request("GET", "/api/cafes/search", auth=False, params=_clean(filters))

    def cafe_detail(self, cafe_id: int | str) -> Any:
        # Authenticated so the API can fill in is_favorite
        return self.request("GET", f"/api/cafes/{cafe_id}")

    def cafe_reviews(self, cafe_id: int | str, page: int = 1) -> Any:
        return self.request("GET", f"/api/cafes/{cafe_id}/reviews", auth=False, params={"page": page})

    def add_review(self, cafe_id: int | str, rating: int, comment: str, **scores) -> Any:
        body = {"rating": rating, "comment": comment or None, **_clean(scores)}
        return self.request("POST", f"/api/cafes/{cafe_id}/reviews", json=body)

    def occupancy(self, cafe_id: int | str) -> Any:
        return self.request("GET", f"/api/cafes/{cafe_id}/occupancy", auth=False)

    def check_in(self, cafe_id: int | str, occupancy_report: int | None = None) -> Any:
        return self.request("POST", f"/api/cafes/{cafe_id}/check-in", json=_clean({"occupancy_report": occupancy_report}))

    # --- Locations ---
    def create_location(self, payload: dict) -> Any:
        return self.request("POST", "/api/locations", json=payload)

    def my_submissions(self) -> Any:
        return self.request("GET", "/api/locations/user/submissions")

    # --- Moderation ---
    def pending_locations(self) -> Any:
        return self.request("GET", "/api/locations/admin/pending")

    def approve_location(self, location_id: int | str, admin_notes: str | None = None) -> Any:
        return self.request("PUT", f"/api/locations/admin/{location_id}/approve", json=_clean({"admin_notes": admin_notes}))

    def reject_location(self, location_id: int | str, rejection_reason: str) -> Any:
        return self.request("PUT", f"/api/locations/admin/{location_id}/reject", json={"rejection_reason": rejection_reason})
