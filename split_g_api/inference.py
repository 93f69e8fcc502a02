import logging

import requests

from split_g_api.errors import ConfigError, InferenceError

logger = logging.getLogger(__name__)


def _predictions(block):
    """Pull the prediction list out of a Roboflow predictions block.

    The workflow nests it one level deeper (``{"predictions": {"predictions": [...]}}``)
    than the plain model endpoint does (``{"predictions": [...]}``).
    """
    if not isinstance(block, dict):
        return []
    preds = block.get("predictions")
    if isinstance(preds, dict):
        preds = preds.get("predictions")
    return preds if isinstance(preds, list) else []


def _frame(block):
    if not isinstance(block, dict):
        return None
    preds = block.get("predictions")
    image = preds.get("image") if isinstance(preds, dict) else block.get("image")
    if isinstance(image, dict) and image.get("width") and image.get("height"):
        return {"width": float(image["width"]), "height": float(image["height"])}
    return None


def has_class(predictions, name):
    return any(pred.get("class") == name for pred in predictions)


class WorkflowResult:
    """The parts of a split-g-scoring workflow response that we use."""

    def __init__(self, output):
        self.output = output
        self.pint_predictions = _predictions(output.get("pint results"))
        self.split_predictions = _predictions(output.get("split results"))
        self.split_frame = _frame(output.get("split results"))

        split_data = output.get("split image")
        if isinstance(split_data, list) and split_data:
            split_data = split_data[0]
        self.split_image = split_data.get("value") if isinstance(split_data, dict) else None

        pint_data = output.get("pint image")
        self.pint_image = pint_data.get("value") if isinstance(pint_data, dict) else None

    @property
    def has_g(self):
        return has_class(self.pint_predictions, "G")

    @classmethod
    def from_response(cls, payload):
        """Wrap ``outputs[0]``. A response without outputs reads as "nothing found"."""
        outputs = payload.get("outputs") if isinstance(payload, dict) else None
        if not outputs or not isinstance(outputs[0], dict):
            return cls({})
        return cls(outputs[0])


class RoboflowClient:
    def __init__(self, api_key, workflow_url, detect_url, detect_model,
                 timeout=10, session=None):
        self.api_key = api_key
        self.workflow_url = workflow_url
        self.detect_url = detect_url.rstrip("/")
        self.detect_model = detect_model.strip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(config.roboflow_api_key, config.workflow_url, config.detect_url,
                   config.detect_model, timeout=config.request_timeout)

    def _require_key(self):
        if not self.api_key:
            raise ConfigError("ROBOFLOW_API_KEY is not set")

    def run_workflow(self, image_b64):
        """Send one image through the scoring workflow."""
        self._require_key()
        body = {
            "api_key": self.api_key,
            "inputs": {"image": {"type": "base64", "value": image_b64}},
        }
        try:
            response = self.session.post(self.workflow_url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise InferenceError(f"API request failed: {e}")

        if not response.ok:
            raise InferenceError(
                f"API request failed ({response.status_code}): {response.text}"
            )

        try:
            payload = response.json()
        except ValueError:
            raise InferenceError("API returned invalid JSON")
        return WorkflowResult.from_response(payload)

    def detect(self, image_b64):
        """Run the lightweight glass/G detector on a single camera frame."""
        self._require_key()
        url = f"{self.detect_url}/{self.detect_model}"
        try:
            response = self.session.post(
                url,
                params={"api_key": self.api_key},
                data=image_b64,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise InferenceError(f"Detection request failed: {e}")

        if not response.ok:
            raise InferenceError(
                f"Detection request failed ({response.status_code}): {response.text}"
            )
        try:
            return _predictions(response.json())
        except ValueError:
            raise InferenceError("Detection returned invalid JSON")
