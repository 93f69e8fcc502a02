import re
import traceback
import uuid
from datetime import datetime, timezone

from flask import Flask, abort, jsonify, redirect, render_template, request, url_for

from split_g_api.config import Config
from split_g_api.detection import TrackerRegistry
from split_g_api.errors import InvalidImage, SplitGError
from split_g_api.images import prepare_upload
from split_g_api.inference import RoboflowClient
from split_g_api.leaderboard import country_leaderboard, ranked
from split_g_api.location import GeoLocator, client_ip
from split_g_api.scoring import calculate_score, score_message
from split_g_api.storage import SupabaseStore
from split_g_api.usernames import generate_beer_username

SESSION_COOKIE = "split-g-session"
SESSION_MAX_AGE = 31536000
NO_G_ERROR = "No G detected"
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class NoGDetected(SplitGError):
    pass


class Services:
    """External collaborators of the web app, swappable in tests."""

    def __init__(self, inference, store, locator, trackers):
        self.inference = inference
        self.store = store
        self.locator = locator
        self.trackers = trackers

    @classmethod
    def from_config(cls, config):
        return cls(
            inference=RoboflowClient.from_config(config),
            store=SupabaseStore.from_config(config),
            locator=GeoLocator.from_config(config),
            trackers=TrackerRegistry(capture_after=config.capture_after),
        )


def score_pour(services, config, image, session_id, ip, logger):
    """Score one photo and persist it. Returns the inserted row."""
    image_b64 = prepare_upload(image, config.max_image_side)

    result = services.inference.run_workflow(image_b64)
    if not result.has_g:
        raise NoGDetected("No G pattern detected")

    if not result.split_image or not result.pint_image:
        raise SplitGError("Missing required image data from API response")

    split_score = calculate_score(result)

    split_image_url = services.store.upload_image(result.split_image, "split-images")
    pint_image_url = services.store.upload_image(result.pint_image, "pint-images")

    location = services.locator.lookup(ip)

    row = services.store.insert_score({
        "split_score": split_score,
        "split_image_url": split_image_url,
        "pint_image_url": pint_image_url,
        "username": generate_beer_username(),
        "created_at": datetime.now(timezone.utc).isoformat(),
        "session_id": session_id,
        "city": location.city,
        "region": location.region,
        "country": location.country,
        "country_code": location.country_code,
    })
    logger.info("✅ Saved score %s for %s (%s)", split_score, row.get("id"), location.country_code)
    return row


def _session_id():
    return request.cookies.get(SESSION_COOKIE) or str(uuid.uuid4())


def _set_session(response, session_id):
    response.set_cookie(SESSION_COOKIE, session_id, max_age=SESSION_MAX_AGE,
                        path="/", samesite="Lax")
    return response


def _is_owner(row):
    session_id = request.cookies.get(SESSION_COOKIE)
    return bool(session_id) and session_id == row.get("session_id")


def _image_field():
    if request.is_json:
        data = request.get_json(silent=True) or {}
        return data.get("image")
    return request.form.get("image")


def create_app(config=None, services=None):
    config = config or Config.from_env()
    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    services = services or Services.from_config(config)

    def process(session_id):
        ip = client_ip(request.headers, request.remote_addr)
        app.logger.info("Detected client IP: %s", ip)
        return score_pour(services, config, _image_field(), session_id, ip, app.logger)

    @app.route("/", methods=["GET"])
    def home():
        return render_template("home.html")

    @app.route("/", methods=["POST"])
    def submit_pour():
        session_id = _session_id()
        try:
            row = process(session_id)
        except InvalidImage as e:
            return render_template("home.html", error=str(e)), 400
        except NoGDetected:
            app.logger.info("❌ No G detected in submitted image")
            return render_template("home.html", no_g=True, error=NO_G_ERROR), 400
        except Exception as e:
            app.logger.error("Error processing image: %s", traceback.format_exc())
            return render_template("home.html", error=f"Failed to process image: {e}"), 500

        response = redirect(url_for("score_page", score_id=row["id"]))
        return _set_session(response, session_id)

    @app.route("/api/score", methods=["POST"])
    def api_score():
        session_id = _session_id()
        try:
            row = process(session_id)
        except InvalidImage as e:
            return jsonify({"success": False, "error": str(e),
                            "message": "Invalid image"}), 400
        except NoGDetected:
            return jsonify({"success": False, "error": NO_G_ERROR,
                            "message": "No G pattern detected"}), 400
        except Exception as e:
            app.logger.error("Error processing image: %s", traceback.format_exc())
            return jsonify({"success": False, "error": str(e),
                            "message": "Failed to process image"}), 500

        payload = dict(row, success=True, message=score_message(row["split_score"]),
                       url=url_for("score_page", score_id=row["id"], _external=True))
        return _set_session(jsonify(payload), session_id), 201

    @app.route("/api/detect", methods=["POST"])
    def api_detect():
        session_id = _session_id()
        try:
            frame = prepare_upload(_image_field(), config.max_image_side)
            predictions = services.inference.detect(frame)
        except InvalidImage as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            app.logger.error("Detection error: %s", traceback.format_exc())
            return jsonify({"error": "Detection failed", "details": str(e)}), 500

        state = services.trackers.update(session_id, predictions)
        response = jsonify({"consecutive": state.consecutive, "message": state.message,
                            "capture": state.capture})
        return _set_session(response, session_id)

    @app.route("/api/detect/reset", methods=["POST"])
    def api_detect_reset():
        services.trackers.reset(_session_id())
        return jsonify({"ok": True})

    @app.route("/score/<int:score_id>")
    def score_page(score_id):
        row = services.store.get_score(score_id)
        if row is None:
            abort(404)
        owner = _is_owner(row)
        return render_template("score.html", score=row, owner=owner,
                               message=score_message(row["split_score"]),
                               share_url=url_for("score_page", score_id=score_id, _external=True),
                               entered=request.args.get("entered") == "1")

    @app.route("/score/<int:score_id>/enter", methods=["POST"])
    def enter_contest(score_id):
        email = (request.form.get("email") or "").strip()
        if not EMAIL_RE.match(email):
            row = services.store.get_score(score_id)
            if row is None:
                abort(404)
            owner = _is_owner(row)
            return render_template("score.html", score=row, owner=owner,
                                   message=score_message(row["split_score"]),
                                   share_url=url_for("score_page", score_id=score_id, _external=True),
                                   error="Please enter a valid email address."), 400

        session_id = request.cookies.get(SESSION_COOKIE)
        row = services.store.set_contact(score_id, session_id, email) if session_id else None
        if row is None:
            if services.store.get_score(score_id) is None:
                abort(404)
            abort(403)
        app.logger.info("Contest entry recorded for score %s", score_id)
        return redirect(url_for("score_page", score_id=score_id, entered=1))

    @app.route("/leaderboard")
    def leaderboard():
        rows = ranked(services.store.top_scores(config.leaderboard_limit))
        return render_template("leaderboard.html", rows=rows)

    @app.route("/leaderboard/countries")
    def countries():
        standings = country_leaderboard(services.store.country_rows(), config.leaderboard_limit)
        return render_template("countries.html", standings=standings)

    @app.route("/submissions")
    def submissions():
        session_id = request.cookies.get(SESSION_COOKIE)
        rows = services.store.session_scores(session_id, config.leaderboard_limit) if session_id else []
        return render_template("submissions.html", rows=rows)

    @app.route("/health")
    def health():
        return jsonify({"ok": True})

    @app.errorhandler(SplitGError)
    def service_error(e):
        app.logger.error("Error: %s", traceback.format_exc())
        return render_template("error.html", error=str(e)), 500

    @app.template_filter("score")
    def format_score(value):
        return f"{float(value):.2f}"

    return app
