from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from conftest import LABELS
from skincheck.exceptions import InferenceError, LoadError
from skincheck.services.classifier import ModelMetadata, OnnxClassifier, softmax


def make_session(output):
    session = MagicMock()
    session.get_inputs.return_value = [SimpleNamespace(name="input_1")]
    session.get_outputs.return_value = [SimpleNamespace(name="probs")]
    session.run.return_value = [np.asarray([output], dtype=np.float32)]
    return session


@pytest.fixture
def pixels():
    return np.zeros((1, 224, 224, 3), dtype=np.float32)


class TestModelMetadata:

    def test_parses_teachable_machine_document(self):
        metadata = ModelMetadata.from_dict(
            {"labels": LABELS, "imageSize": 224, "modelName": "lesions", "extra": 1}
        )
        assert metadata.labels == tuple(LABELS)
        assert metadata.image_size == 224
        assert metadata.model_name == "lesions"

    def test_image_size_defaults(self):
        assert ModelMetadata.from_dict({"labels": ["a"]}).image_size == 224

    @pytest.mark.parametrize(
        "document",
        [
            [],
            "labels",
            {},
            {"labels": []},
            {"labels": "0_Normal"},
            {"labels": ["0_Normal", 3]},
            {"labels": ["0_Normal", ""]},
            {"labels": ["a"], "imageSize": 0},
            {"labels": ["a"], "imageSize": "224"},
            {"labels": ["a"], "imageSize": True},
        ],
    )
    def test_rejects_unusable_documents(self, document):
        with pytest.raises(LoadError):
            ModelMetadata.from_dict(document)


class TestOnnxClassifier:

    def test_predict_returns_pairs_in_label_order(self, metadata, pixels):
        session = make_session([0.1, 0.05, 0.05, 0.2, 0.6])
        classifier = OnnxClassifier(session, metadata)

        pairs = classifier.predict(pixels)

        assert [label for label, _ in pairs] == LABELS
        assert [p for _, p in pairs] == pytest.approx([0.1, 0.05, 0.05, 0.2, 0.6])
        feeds = session.run.call_args.args[1]
        assert list(feeds) == ["input_1"]
        assert feeds["input_1"].dtype == np.float32

    def test_logits_are_softmaxed(self, metadata, pixels):
        classifier = OnnxClassifier(make_session([2.0, 1.0, 0.0, -1.0, 3.0]), metadata)

        probabilities = [p for _, p in classifier.predict(pixels)]

        assert sum(probabilities) == pytest.approx(1.0)
        assert max(probabilities) == probabilities[-1]

    def test_output_width_mismatch(self, metadata, pixels):
        classifier = OnnxClassifier(make_session([0.5, 0.5]), metadata)
        with pytest.raises(InferenceError, match="2 outputs for 5 labels"):
            classifier.predict(pixels)

    def test_forward_pass_error(self, metadata, pixels):
        session = make_session([0.2] * 5)
        session.run.side_effect = RuntimeError("bad input shape")
        classifier = OnnxClassifier(session, metadata)
        with pytest.raises(InferenceError, match="bad input shape"):
            classifier.predict(pixels)

    def test_predict_after_dispose(self, metadata, pixels):
        classifier = OnnxClassifier(make_session([0.2] * 5), metadata)
        classifier.dispose()
        with pytest.raises(InferenceError, match="disposed"):
            classifier.predict(pixels)

    def test_exposes_metadata(self, metadata):
        classifier = OnnxClassifier(make_session([0.2] * 5), metadata)
        assert classifier.labels == tuple(LABELS)
        assert classifier.image_size == 224

    def test_from_bytes_wraps_runtime_errors(self, metadata):
        with patch("skincheck.services.classifier.ort.InferenceSession", side_effect=RuntimeError("protobuf parse")):
            with pytest.raises(LoadError, match="protobuf parse"):
                OnnxClassifier.from_bytes(b"not-a-model", metadata)

    def test_from_bytes_builds_session(self, metadata):
        session = make_session([0.2] * 5)
        with patch("skincheck.services.classifier.ort.InferenceSession", return_value=session) as ctor:
            classifier = OnnxClassifier.from_bytes(b"model", metadata)

        ctor.assert_called_once_with(b"model", providers=["CPUExecutionProvider"])
        assert classifier.labels == tuple(LABELS)


def test_softmax_sums_to_one():
    result = softmax(np.array([1000.0, 1000.0]))
    assert result.tolist() == pytest.approx([0.5, 0.5])
