"""
Unit tests for request, config and credential types.
"""

import io
import unittest

from sigv4_lib.errors import BodyReadError
from sigv4_lib.hash_funcs import SHA256
from sigv4_lib.models import Credential, RequestView, SignerConfig, SigningScope


class TestCredential(unittest.TestCase):
    def test_secret_not_in_repr(self):
        credential = Credential("AKIDEXAMPLE", "super-secret")
        self.assertIn("AKIDEXAMPLE", repr(credential))
        self.assertNotIn("super-secret", repr(credential))


class TestSigningScope(unittest.TestCase):
    def test_str(self):
        self.assertEqual(str(SigningScope("20150830", "us-east-1", "iam")), "20150830/us-east-1/iam/aws4_request")


class TestSignerConfig(unittest.TestCase):
    def test_headers_normalized(self):
        config = SignerConfig("us-east-1", "iam", ["X-Amz-Date", " Host ", "host"])
        self.assertEqual(config.signed_headers, ("host", "x-amz-date"))

    def test_caller_list_untouched(self):
        names = ["X-Amz-Date", "Host"]
        SignerConfig("us-east-1", "iam", names)
        self.assertEqual(names, ["X-Amz-Date", "Host"])

    def test_defaults(self):
        config = SignerConfig("us-east-1", "iam")
        self.assertEqual(config.signed_headers, ("host",))
        self.assertIs(config.hash_func, SHA256)
        self.assertEqual(config.algorithm, "AWS4-HMAC-SHA256")

    def test_with_headers_returns_copy(self):
        config = SignerConfig("us-east-1", "iam", ["host"])
        updated = config.with_headers("Host", "X-Amz-Date")
        self.assertEqual(updated.signed_headers, ("host", "x-amz-date"))
        self.assertEqual(config.signed_headers, ("host",))


class TestRequestView(unittest.TestCase):
    def test_from_url(self):
        request = RequestView.from_url("GET", "https://iam.amazonaws.com/a%20b?Action=ListUsers&flag&empty=")
        self.assertEqual(request.path, "/a%20b")
        self.assertEqual(request.query, [("Action", "ListUsers"), ("flag", ""), ("empty", "")])
        self.assertEqual(request.get_header_values("host"), ["iam.amazonaws.com"])

    def test_from_url_keeps_explicit_host_and_custom_port(self):
        request = RequestView.from_url("GET", "http://localhost:8080", headers=[("Host", "api.example.com")])
        self.assertEqual(request.get_header_values("host"), ["api.example.com"])
        self.assertEqual(request.path, "/")

        request = RequestView.from_url("GET", "http://localhost:8080/")
        self.assertEqual(request.get_header_values("host"), ["localhost:8080"])

        request = RequestView.from_url("GET", "https://example.com:443/")
        self.assertEqual(request.get_header_values("host"), ["example.com"])

    def test_set_header_replaces_all_cases(self):
        request = RequestView("GET", headers=[("X-Foo", "a"), ("x-foo", "b"), ("host", "h")])
        request.set_header("X-FOO", "c")
        self.assertEqual(request.get_header_values("x-foo"), ["c"])
        self.assertEqual(request.get_header_values("host"), ["h"])


class TestReadBody(unittest.TestCase):
    """Test body materialization."""

    def test_none(self):
        request = RequestView("GET")
        self.assertEqual(request.read_body(), b"")
        self.assertEqual(request.body.read(), b"")

    def test_str(self):
        request = RequestView("POST", body="héllo")
        self.assertEqual(request.read_body(), "héllo".encode("utf-8"))

    def test_stream_replaced_with_fresh_copy(self):
        original = io.BytesIO(b"payload")
        request = RequestView("POST", body=original)

        self.assertEqual(request.read_body(), b"payload")
        self.assertIsNot(request.body, original)
        self.assertEqual(request.body.read(), b"payload")

    def test_read_twice(self):
        request = RequestView("POST", body=io.BytesIO(b"payload"))
        self.assertEqual(request.read_body(), b"payload")
        self.assertEqual(request.read_body(), b"payload")

    def test_failed_read_rewinds_stream(self):
        class FlakyStream(io.BytesIO):
            def read(self, *args):
                super().read(3)
                raise OSError("read interrupted")

        stream = FlakyStream(b"payload")
        request = RequestView("POST", body=stream)

        with self.assertRaises(BodyReadError):
            request.read_body()
        self.assertIs(request.body, stream)
        self.assertEqual(stream.tell(), 0)

    def test_stream_transport_error_wrapped(self):
        class DroppedStream(io.BytesIO):
            def read(self, *args):
                raise RuntimeError("transport died")

        stream = DroppedStream(b"payload")
        request = RequestView("POST", body=stream)

        with self.assertRaises(BodyReadError) as ctx:
            request.read_body()
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)
        self.assertIs(request.body, stream)

    def test_generator_error_wrapped(self):
        def chunks():
            yield b"first"
            raise RuntimeError("boom")

        with self.assertRaises(BodyReadError):
            RequestView("POST", body=chunks()).read_body()

    def test_stream_returning_non_bytes(self):
        class OddStream:
            def read(self):
                return 42

            def seekable(self):
                return False

        with self.assertRaises(BodyReadError):
            RequestView("POST", body=OddStream()).read_body()

    def test_bad_chunk(self):
        with self.assertRaises(BodyReadError):
            RequestView("POST", body=[b"ok", "not bytes"]).read_body()
