import base64

import cv2
import numpy as np
import pytest

from split_g_api.config import Config
from split_g_api.detection import TrackerRegistry
from split_g_api.inference import WorkflowResult
from split_g_api.location import Location
from split_g_api.split_g_api import Services, create_app


def jpeg_b64(width=30, height=40):
    image = np.full((height, width, 3), 120, np.uint8)
    ok, buffer = cv2.imencode(".jpg", image)
    assert ok
    return base64.b64encode(buffer.tobytes()).decode("ascii")


def workflow_payload(g=True, split_y=50.0, split_x=50.0, images=True):
    pint = [{"class": "glass", "x": 200, "y": 300, "width": 150, "height": 400, "confidence": 0.9}]
    if g:
        pint.append({"class": "G", "x": 200, "y": 250, "width": 80, "height": 100, "confidence": 0.8})
    output = {
        "pint results": {"predictions": {"image": {"width": 400, "height": 600},
                                         "predictions": pint}},
        "split results": {"predictions": {
            "image": {"width": 100, "height": 100},
            "predictions": [{"class": "split", "x": split_x, "y": split_y,
                             "width": 90, "height": 6, "confidence": 0.7}],
        }},
    }
    if images:
        output["split image"] = [{"type": "base64", "value": jpeg_b64()}]
        output["pint image"] = {"type": "base64", "value": jpeg_b64()}
    return {"outputs": [output]}


class FakeInference:
    def __init__(self, payload=None, detections=None, error=None):
        self.payload = payload or workflow_payload()
        self.detections = detections or []
        self.error = error
        self.calls = []

    def run_workflow(self, image_b64):
        self.calls.append(image_b64)
        if self.error:
            raise self.error
        return WorkflowResult.from_response(self.payload)

    def detect(self, image_b64):
        self.calls.append(image_b64)
        if self.error:
            raise self.error
        return self.detections


class FakeStore:
    def __init__(self):
        self.rows = []
        self.uploads = []

    def upload_image(self, image_b64, folder):
        self.uploads.append(folder)
        return f"https://storage.test/{folder}/{len(self.uploads)}.jpg"

    def insert_score(self, record):
        row = dict(record, id=len(self.rows) + 1, email=None)
        self.rows.append(row)
        return row

    def get_score(self, score_id):
        return next((r for r in self.rows if r["id"] == score_id), None)

    def top_scores(self, limit):
        rows = sorted(self.rows, key=lambda r: (-r["split_score"], r["created_at"]))
        return rows[:limit]

    def session_scores(self, session_id, limit):
        rows = [r for r in self.rows if r["session_id"] == session_id]
        return list(reversed(rows))[:limit]

    def country_rows(self):
        return [{k: r[k] for k in ("country", "country_code", "split_score")} for r in self.rows]

    def set_contact(self, score_id, session_id, email):
        row = self.get_score(score_id)
        if row is None or row["session_id"] != session_id:
            return None
        row["email"] = email
        return row


class FakeLocator:
    def __init__(self, location=None):
        self.location = location or Location("Dublin", "Leinster", "Ireland", "IE")
        self.ips = []

    def lookup(self, ip):
        self.ips.append(ip)
        return self.location


@pytest.fixture
def config():
    return Config(roboflow_api_key="test-key", supabase_url="https://db.test",
                  supabase_key="service-key", secret_key="test", capture_after=5)


@pytest.fixture
def services():
    return Services(FakeInference(), FakeStore(), FakeLocator(), TrackerRegistry(capture_after=5))


@pytest.fixture
def app(config, services):
    app = create_app(config, services)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
