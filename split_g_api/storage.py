import base64
import binascii
import logging
import uuid

import requests

from split_g_api.errors import ConfigError, StorageError

logger = logging.getLogger(__name__)

SCORES_TABLE = "scores"

SCORE_COLUMNS = (
    "id,split_score,split_image_url,pint_image_url,username,created_at,"
    "session_id,city,region,country,country_code,email"
)


class SupabaseStore:
    """Supabase object storage and the ``scores`` table, over the REST API."""

    def __init__(self, url, key, bucket="split-g-images", timeout=10, session=None):
        self.url = url.rstrip("/") if url else url
        self.key = key
        self.bucket = bucket
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(config.supabase_url, config.supabase_key,
                   bucket=config.supabase_bucket, timeout=config.request_timeout)

    def _headers(self, extra=None):
        if not self.url or not self.key:
            raise ConfigError("SUPABASE_URL and SUPABASE_KEY must be set")
        headers = {"apikey": self.key, "Authorization": f"Bearer {self.key}"}
        if extra:
            headers.update(extra)
        return headers

    def _request(self, method, path, **kwargs):
        headers = self._headers(kwargs.pop("headers", None))
        try:
            response = self.session.request(
                method, f"{self.url}{path}", headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise StorageError(f"Storage request failed: {e}")

        if not response.ok:
            raise StorageError(
                f"Storage request failed ({response.status_code}): {response.text}",
                status=response.status_code,
            )
        return response

    def _rows(self, response):
        try:
            rows = response.json()
        except ValueError:
            raise StorageError("Storage returned invalid JSON")
        return rows if isinstance(rows, list) else [rows]

    # ---- object storage ----

    def public_url(self, path):
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{path}"

    def upload_image(self, image_b64, folder):
        """Store a base64 JPEG under ``folder`` and return its public URL."""
        try:
            data = base64.b64decode(image_b64)
        except (binascii.Error, ValueError) as e:
            raise StorageError(f"Image data is not valid base64: {e}")

        path = f"{folder}/{uuid.uuid4()}.jpg"
        self._request(
            "POST",
            f"/storage/v1/object/{self.bucket}/{path}",
            data=data,
            headers={"Content-Type": "image/jpeg", "x-upsert": "false"},
        )
        logger.info("Uploaded %s (%d bytes)", path, len(data))
        return self.public_url(path)

    # ---- scores table ----

    def insert_score(self, record):
        response = self._request(
            "POST",
            f"/rest/v1/{SCORES_TABLE}",
            json=record,
            headers={"Prefer": "return=representation"},
        )
        rows = self._rows(response)
        if not rows:
            raise StorageError("Insert returned no row")
        return rows[0]

    def get_score(self, score_id):
        response = self._request(
            "GET",
            f"/rest/v1/{SCORES_TABLE}",
            params={"id": f"eq.{score_id}", "select": SCORE_COLUMNS},
        )
        rows = self._rows(response)
        return rows[0] if rows else None

    def top_scores(self, limit):
        response = self._request(
            "GET",
            f"/rest/v1/{SCORES_TABLE}",
            params={
                "select": SCORE_COLUMNS,
                "order": "split_score.desc,created_at.asc",
                "limit": str(limit),
            },
        )
        return self._rows(response)

    def session_scores(self, session_id, limit):
        response = self._request(
            "GET",
            f"/rest/v1/{SCORES_TABLE}",
            params={
                "select": SCORE_COLUMNS,
                "session_id": f"eq.{session_id}",
                "order": "created_at.desc",
                "limit": str(limit),
            },
        )
        return self._rows(response)

    def country_rows(self):
        response = self._request(
            "GET",
            f"/rest/v1/{SCORES_TABLE}",
            params={"select": "country,country_code,split_score"},
        )
        return self._rows(response)

    def set_contact(self, score_id, session_id, email):
        """Attach an email to a score owned by ``session_id``. None if no such row."""
        response = self._request(
            "PATCH",
            f"/rest/v1/{SCORES_TABLE}",
            params={"id": f"eq.{score_id}", "session_id": f"eq.{session_id}"},
            json={"email": email},
            headers={"Prefer": "return=representation"},
        )
        rows = self._rows(response)
        return rows[0] if rows else None
