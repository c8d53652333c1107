from __future__ import annotations
from urllib.parse import urlparse

from flask import Flask, render_template, request, redirect, url_for, session, flash, g, send_from_directory
from dotenv import load_dotenv

from workcafe_web.config import Config
from workcafe_web.api import WorkCafeAPI, APIError

load_dotenv()

app = Flask(__name__)
app.config.from_object(Config)

AMENITY_CHOICES = ["wifi", "power", "restrooms", "parking", "vegan", "vegetarian", "gluten_free", "dairy_free"]
POWER_CHOICES = ["None", "Very Limited", "Limited", "Abundant"]
NOISE_CHOICES = ["Very Quiet", "Quiet", "Moderate", "Loud", "Very Loud"]


def _is_local_url(target: str) -> bool:
    parts = urlparse(target.replace("\\", "/"))
    return target.startswith("/") and not parts.scheme and not parts.netloc


def get_token() -> str | None:
    return session.get("access_token")


api = WorkCafeAPI(app.config["API_BASE_URL"], token_getter=get_token, timeout=app.config["API_TIMEOUT_SECONDS"])


@app.before_request
def load_current_user():
    g.me = None
    if session.get("access_token"):
        # /me is cached in the session and dropped whenever the profile changes
        if session.get("me_cache"):
            g.me = session["me_cache"]
            return
        try:
            me = api.me()
            session["me_cache"] = me
            g.me = me
        except APIError:
            session.pop("access_token", None)
            session.pop("me_cache", None)
            g.me = None


def require_login():
    if not session.get("access_token"):
        flash("Please log in first.", "warning")
        return redirect(url_for("login", next=request.path))
    return None


def require_admin():
    r = require_login()
    if r:
        return r
    if not g.me or g.me.get("role") != "admin":
        flash("Admin privileges required.", "danger")
        return redirect(url_for("index"))
    return None


def _int_or_none(raw: str | None) -> int | None:
    raw = (raw or "").strip()
    return int(raw) if raw.isdigit() else None


def _float_or_none(raw: str | None) -> float | None:
    try:
        return float((raw or "").strip())
    except ValueError:
        return None


@app.get("/service-worker.js")
def service_worker():
    resp = send_from_directory(app.static_folder, "service-worker.js", mimetype="application/javascript")
    resp.headers["Service-Worker-Allowed"] = "/"
    resp.headers["Cache-Control"] = "no-cache"
    return resp


@app.get("/")
def index():
    filters = {
        "query": request.args.get("query", "").strip(),
        "city": request.args.get("city", "").strip(),
        "amenities": request.args.getlist("amenities"),
        "minRating": request.args.get("minRating", ""),
        "maxNoise": request.args.get("maxNoise", ""),
        "minWifi": request.args.get("minWifi", ""),
        "openNow": "true" if request.args.get("openNow") else "",
    }
    page = request.args.get("page", 1, type=int)

    try:
        if any(filters.values()):
            result = api.search_cafes(page=page, **filters)
        else:
            result = api.cafes(page=page)
    except APIError as e:
        result = {"items": [], "total": 0, "page": page, "total_pages": 0}
        flash(f"Could not load cafes: {e.message}", "danger")

    page_args = {k: v for k, v in request.args.lists() if k != "page"}
    return render_template(
        "index.html", result=result, filters=filters, amenity_choices=AMENITY_CHOICES, page_args=page_args
    )


@app.route("/register", methods=["GET", "POST"])
def register():
    if request.method == "POST":
        try:
            payload = api.register(
                username=request.form.get("username", "").strip(),
                email=request.form.get("email", "").strip(),
                password=request.form.get("password", ""),
                first_name=request.form.get("first_name", "").strip() or None,
                last_name=request.form.get("last_name", "").strip() or None,
            )
            session["access_token"] = payload.get("access_token") if isinstance(payload, dict) else None
            session.pop("me_cache", None)
            flash("Account created. Welcome!", "success")
            return redirect(url_for("index"))
        except APIError as e:
            flash(f"Registration failed: {e.message}", "danger")
    return render_template("register.html")


@app.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "POST":
        email = request.form.get("email", "").strip()
        password = request.form.get("password", "")
        try:
            token = api.login(email=email, password=password)
            if not token:
                flash("Login did not return a token.", "danger")
                return render_template("login.html")
            session["access_token"] = token
            session.pop("me_cache", None)
            flash("Logged in.", "success")
            next_url = request.args.get("next", "")
            return redirect(next_url if _is_local_url(next_url) else url_for("index"))
        except APIError as e:
            flash(f"Login failed: {e.message}", "danger")
    return render_template("login.html")


@app.get("/logout")
def logout():
    session.pop("access_token", None)
    session.pop("me_cache", None)
    flash("Logged out.", "info")
    return redirect(url_for("index"))


@app.route("/profile", methods=["GET", "POST"])
def profile():
    r = require_login()
    if r: return r

    if request.method == "POST":
        try:
            api.update_me(
                first_name=request.form.get("first_name", "").strip() or None,
                last_name=request.form.get("last_name", "").strip() or None,
                bio=request.form.get("bio", "").strip() or None,
            )
            session.pop("me_cache", None)
            flash("Profile updated.", "success")
            return redirect(url_for("profile"))
        except APIError as e:
            flash(f"Could not update profile: {e.message}", "danger")

    # always fresh: the active check-in changes independently of the profile
    try:
        me = api.me()
    except APIError as e:
        me = g.me or {}
        flash(f"Could not load profile: {e.message}", "danger")

    try:
        favorites = api.favorites().get("items", [])
    except APIError:
        favorites = []

    return render_template("profile.html", me=me, favorites=favorites)


@app.post("/check-out")
def check_out():
    r = require_login()
    if r: return r
    try:
        api.check_out()
        flash("Checked out.", "success")
    except APIError as e:
        flash(f"Check-out failed: {e.message}", "danger")
    return redirect(request.referrer or url_for("profile"))


@app.route("/cafes/<int:cafe_id>", methods=["GET", "POST"])
def cafe_detail(cafe_id: int):
    # POST here adds a review
    if request.method == "POST":
        r = require_login()
        if r: return r
        scores = {
            name: _int_or_none(request.form.get(name))
            for name in ("wifi_rating", "power_rating", "comfort_rating", "noise_rating", "coffee_rating", "food_rating")
        }
        try:
            api.add_review(
                cafe_id,
                rating=_int_or_none(request.form.get("rating")) or 5,
                comment=request.form.get("comment", "").strip(),
                **scores,
            )
            flash("Review posted.", "success")
        except APIError as e:
            flash(f"Could not post review: {e.message}", "danger")
        return redirect(url_for("cafe_detail", cafe_id=cafe_id))

    try:
        cafe = api.cafe_detail(cafe_id)
    except APIError as e:
        flash(f"Could not load cafe: {e.message}", "danger")
        return redirect(url_for("index"))

    page = request.args.get("page", 1, type=int)
    try:
        reviews = api.cafe_reviews(cafe_id, page=page)
    except APIError:
        reviews = {"items": [], "total": 0, "page": page, "total_pages": 0}

    try:
        occupancy = api.occupancy(cafe_id)
    except APIError:
        occupancy = None

    return render_template("cafe_detail.html", cafe=cafe, reviews=reviews, occupancy=occupancy)


@app.post("/cafes/<int:cafe_id>/check-in")
def cafe_check_in(cafe_id: int):
    r = require_login()
    if r: return r
    try:
        api.check_in(cafe_id, occupancy_report=_int_or_none(request.form.get("occupancy_report")))
        flash("Checked in.", "success")
    except APIError as e:
        flash(f"Check-in failed: {e.message}", "danger")
    return redirect(url_for("cafe_detail", cafe_id=cafe_id))


@app.post("/cafes/<int:cafe_id>/favorite")
def cafe_favorite(cafe_id: int):
    r = require_login()
    if r: return r
    try:
        if request.form.get("action") == "remove":
            api.remove_favorite(cafe_id)
            flash("Removed from favorites.", "info")
        else:
            api.add_favorite(cafe_id)
            flash("Added to favorites.", "success")
    except APIError as e:
        flash(f"Could not update favorites: {e.message}", "danger")
    return redirect(url_for("cafe_detail", cafe_id=cafe_id))


def _location_payload(form) -> dict:
    payload = {
        "name": form.get("name", "").strip(),
        "address": form.get("address", "").strip(),
        "city": form.get("city", "").strip(),
        "state": form.get("state", "").strip() or None,
        "country": form.get("country", "").strip(),
        "description": form.get("description", "").strip() or None,
        "website": form.get("website", "").strip() or None,
        "latitude": _float_or_none(form.get("latitude")),
        "longitude": _float_or_none(form.get("longitude")),
        "amenities": {
            "has_wifi": bool(form.get("has_wifi")),
            "wifi_speed": _int_or_none(form.get("wifi_speed")),
            "power_outlets": form.get("power_outlets") or "None",
            "noise_level": form.get("noise_level") or "Moderate",
        },
        "categories": [c.strip() for c in form.get("categories", "").split(",") if c.strip()],
    }
    photo_url = form.get("photo_url", "").strip()
    if photo_url:
        payload["photos"] = [{"url": photo_url}]
    return payload


@app.route("/locations/new", methods=["GET", "POST"])
def location_new():
    r = require_login()
    if r: return r

    if request.method == "POST":
        try:
            api.create_location(_location_payload(request.form))
            flash("Location submitted. It will appear once an admin approves it.", "success")
            return redirect(url_for("my_submissions"))
        except APIError as e:
            flash(f"Could not submit location: {e.message}", "danger")

    return render_template("location_new.html", power_choices=POWER_CHOICES, noise_choices=NOISE_CHOICES)


@app.get("/locations/mine")
def my_submissions():
    r = require_login()
    if r: return r
    try:
        items = api.my_submissions()
    except APIError as e:
        items = []
        flash(f"Could not load submissions: {e.message}", "danger")
    return render_template("submissions.html", items=items)


@app.get("/admin/locations")
def admin_locations():
    r = require_admin()
    if r: return r
    try:
        items = api.pending_locations()
    except APIError as e:
        items = []
        flash(f"Could not load pending locations: {e.message}", "danger")
    return render_template("admin_pending.html", items=items)


@app.post("/admin/locations/<int:location_id>/<action>")
def admin_locations_action(location_id: int, action: str):
    r = require_admin()
    if r: return r
    try:
        if action == "approve":
            api.approve_location(location_id, admin_notes=request.form.get("admin_notes", "").strip() or None)
        elif action == "reject":
            reason = request.form.get("rejection_reason", "").strip()
            if not reason:
                flash("A rejection reason is required.", "warning")
                return redirect(url_for("admin_locations"))
            api.reject_location(location_id, rejection_reason=reason)
        else:
            flash("Unknown action.", "warning")
            return redirect(url_for("admin_locations"))
        flash("Done.", "success")
    except APIError as e:
        flash(f"Moderation failed: {e.message}", "danger")
    return redirect(url_for("admin_locations"))


if __name__ == "__main__":
    import os

    app.run(host="127.0.0.1", port=int(os.getenv("FLASK_PORT", "5001")), debug=True)
