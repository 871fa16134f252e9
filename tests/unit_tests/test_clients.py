"""
Unit tests for SpannerAdminRestClient.
"""

import unittest
from unittest.mock import MagicMock, patch

import requests

import transport as rpc
from clients import SpannerAdminRestClient
from errors import ErrorCode, ServiceError

PARENT = "projects/test/instances/inst"


def _response(status_code=200, payload=None, headers=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {}
    resp.content = b"{}" if payload is not None else b""
    resp.headers = headers or {}
    resp.text = ""
    return resp


class TestSpannerAdminRestClient(unittest.TestCase):
    """Test SpannerAdminRestClient REST API interactions."""

    def setUp(self):
        """Set up test fixtures."""
        with patch("google.auth.default") as mock_auth, patch("clients.AuthorizedSession"):
            mock_creds = MagicMock()
            mock_auth.return_value = (mock_creds, None)
            self.client = SpannerAdminRestClient()
        self.session = MagicMock()
        self.client.session = self.session

    def test_client_initialization(self):
        """Test client is properly initialised."""
        self.assertEqual(self.client.timeout_s, 60)
        self.assertEqual(self.client.max_retries, 5)
        self.assertEqual(self.client.base_delay, 1.0)
        self.assertEqual(self.client.endpoint, "https://spanner.googleapis.com/v1")

    def test_url_construction(self):
        """Test API URL construction."""
        url = self.client._url(f"/{PARENT}/backups")
        self.assertEqual(url, f"https://spanner.googleapis.com/v1/{PARENT}/backups")

    def test_create_backup_request(self):
        """Test the backup resource goes in the body and backupId in the query."""
        self.session.request.return_value = _response(payload={"name": f"{PARENT}/backups/b/operations/o"})

        result = self.client.unary_call(
            rpc.CREATE_BACKUP,
            {
                "parent": PARENT,
                "backupId": "b",
                "backup": {"database": f"{PARENT}/databases/d", "expireTime": "2030-01-01T00:00:00Z"},
            },
        )

        self.assertEqual(result["name"], f"{PARENT}/backups/b/operations/o")
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("POST", f"https://spanner.googleapis.com/v1/{PARENT}/backups"))
        self.assertEqual(kwargs["params"], {"backupId": "b"})
        self.assertEqual(kwargs["json"]["database"], f"{PARENT}/databases/d")
        self.assertEqual(kwargs["timeout"], 60)

    def test_update_backup_uses_nested_name(self):
        """Test update-backup resolves the path from backup.name."""
        self.session.request.return_value = _response(payload={"name": f"{PARENT}/backups/b"})

        self.client.unary_call(
            rpc.UPDATE_BACKUP,
            {
                "backup": {"name": f"{PARENT}/backups/b", "expireTime": "2030-01-01T00:00:00Z"},
                "updateMask": "expireTime",
            },
        )

        args, kwargs = self.session.request.call_args
        self.assertEqual(args[0], "PATCH")
        self.assertTrue(args[1].endswith(f"{PARENT}/backups/b"))
        self.assertEqual(kwargs["params"], {"updateMask": "expireTime"})
        self.assertEqual(kwargs["json"]["expireTime"], "2030-01-01T00:00:00Z")

    def test_get_operation_with_timeout(self):
        """Test per-call timeout overrides the default."""
        name = f"{PARENT}/databases/d/operations/o"
        self.session.request.return_value = _response(payload={"name": name, "done": True})

        result = self.client.unary_call(rpc.GET_OPERATION, {"name": name}, timeout=2.5)

        self.assertTrue(result["done"])
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("GET", f"https://spanner.googleapis.com/v1/{name}"))
        self.assertEqual(kwargs["timeout"], 2.5)
        self.assertNotIn("json", kwargs)

    def test_cancel_operation_empty_response(self):
        """Test an empty response body decodes to an empty dict."""
        name = f"{PARENT}/backups/b/operations/o"
        self.session.request.return_value = _response()

        self.assertEqual(self.client.unary_call(rpc.CANCEL_OPERATION, {"name": name}), {})
        args, _ = self.session.request.call_args
        self.assertEqual(args[1], f"https://spanner.googleapis.com/v1/{name}:cancel")

    def test_unsupported_method(self):
        with self.assertRaises(ValueError):
            self.client.unary_call("ListInstances", {"parent": "projects/test"})

    def test_missing_path_field(self):
        with self.assertRaises(ServiceError) as ctx:
            self.client.unary_call(rpc.GET_BACKUP, {})
        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)
        self.session.request.assert_not_called()

    def test_paged_call_with_pagination(self):
        """Test listing backups page by page."""
        first = _response(payload={"backups": [{"name": "b1"}], "nextPageToken": "token123"})
        second = _response(payload={"backups": [{"name": "b2"}]})
        self.session.request.side_effect = [first, second]

        items, token = self.client.paged_call(
            rpc.LIST_BACKUPS, {"parent": PARENT, "filter": "name:b", "pageSize": 1}
        )
        self.assertEqual(items, [{"name": "b1"}])
        self.assertEqual(token, "token123")

        items, token = self.client.paged_call(
            rpc.LIST_BACKUPS, {"parent": PARENT, "filter": "name:b", "pageSize": 1}, token
        )
        self.assertEqual(items, [{"name": "b2"}])
        self.assertIsNone(token)

        _, kwargs = self.session.request.call_args
        self.assertEqual(
            kwargs["params"], {"filter": "name:b", "pageSize": 1, "pageToken": "token123"}
        )

    def test_list_operations_items_key(self):
        self.session.request.return_value = _response(payload={"operations": [{"name": "op"}]})
        items, token = self.client.paged_call(rpc.LIST_DATABASE_OPERATIONS, {"parent": PARENT})
        self.assertEqual(items, [{"name": "op"}])
        self.assertIsNone(token)
        args, _ = self.session.request.call_args
        self.assertTrue(args[1].endswith(f"{PARENT}/databaseOperations"))

    def test_error_mapping(self):
        """Test API errors become ServiceError with the mapped code."""
        self.session.request.return_value = _response(
            404, {"error": {"status": "NOT_FOUND", "message": "Backup not found"}}
        )
        with self.assertRaises(ServiceError) as ctx:
            self.client.unary_call(rpc.GET_BACKUP, {"name": f"{PARENT}/backups/b"})
        self.assertEqual(ctx.exception.code, ErrorCode.NOT_FOUND)
        self.assertIn("Backup not found", ctx.exception.message)
        self.assertFalse(ctx.exception.retryable)

    def test_conflict_is_not_retried(self):
        """Test 409 maps to ALREADY_EXISTS without retrying."""
        self.session.request.return_value = _response(
            409, {"error": {"status": "ALREADY_EXISTS", "message": "exists"}}
        )
        with self.assertRaises(ServiceError) as ctx:
            self.client.unary_call(rpc.GET_DATABASE, {"name": f"{PARENT}/databases/d"})
        self.assertEqual(ctx.exception.code, ErrorCode.ALREADY_EXISTS)
        self.assertEqual(self.session.request.call_count, 1)

    @patch("clients.time.sleep")
    def test_retry_on_503(self, mock_sleep):
        """Test retry logic on 503 errors."""
        self.session.request.side_effect = [
            _response(503, {"error": {"message": "Service unavailable"}}),
            _response(payload={"name": f"{PARENT}/databases/d", "state": "READY"}),
        ]

        result = self.client.unary_call(rpc.GET_DATABASE, {"name": f"{PARENT}/databases/d"})

        self.assertEqual(result["state"], "READY")
        self.assertEqual(self.session.request.call_count, 2)
        mock_sleep.assert_called_once()

    @patch("clients.time.sleep")
    def test_retry_after_header(self, mock_sleep):
        """Test Retry-After header is honoured."""
        self.session.request.side_effect = [
            _response(429, {}, headers={"Retry-After": "7"}),
            _response(payload={}),
        ]
        self.client.unary_call(rpc.GET_DATABASE, {"name": f"{PARENT}/databases/d"})
        mock_sleep.assert_called_once_with(7.0)

    @patch("clients.time.sleep")
    def test_connection_errors_retried(self, mock_sleep):
        self.session.request.side_effect = [
            requests.exceptions.ConnectionError("reset"),
            _response(payload={"name": "x"}),
        ]
        self.assertEqual(
            self.client.unary_call(rpc.GET_DATABASE, {"name": f"{PARENT}/databases/d"}),
            {"name": "x"},
        )

    @patch("clients.time.sleep")
    def test_max_retries_exceeded(self, mock_sleep):
        """Test exhausting retries raises a retryable UNAVAILABLE error."""
        self.client.max_retries = 2
        self.session.request.return_value = _response(503, {"error": {"message": "down"}})

        with self.assertRaises(ServiceError) as ctx:
            self.client.unary_call(rpc.GET_DATABASE, {"name": f"{PARENT}/databases/d"})

        self.assertEqual(ctx.exception.code, ErrorCode.UNAVAILABLE)
        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(self.session.request.call_count, 3)
        self.assertEqual(mock_sleep.call_count, 2)

    @patch("clients.time.sleep")
    def test_create_not_resent_after_read_timeout(self, mock_sleep):
        """Test a create whose response was lost is not sent a second time."""
        self.session.request.side_effect = [
            requests.exceptions.ReadTimeout("response lost"),
            _response(409, {"error": {"status": "ALREADY_EXISTS", "message": "exists"}}),
        ]

        with self.assertRaises(ServiceError) as ctx:
            self.client.unary_call(
                rpc.CREATE_DATABASE,
                {"parent": PARENT, "createStatement": "CREATE DATABASE `d`", "extraStatements": []},
            )

        self.assertEqual(ctx.exception.code, ErrorCode.UNKNOWN)
        verbs = [c.args[0] for c in self.session.request.call_args_list]
        self.assertEqual(verbs, ["POST"])
        mock_sleep.assert_not_called()

    @patch("clients.time.sleep")
    def test_restore_not_resent_after_server_error(self, mock_sleep):
        """Test a 500 on restore is reported instead of retried."""
        self.session.request.return_value = _response(
            500, {"error": {"status": "INTERNAL", "message": "boom"}}
        )
        with self.assertRaises(ServiceError):
            self.client.unary_call(
                rpc.RESTORE_DATABASE,
                {"parent": PARENT, "databaseId": "r", "backup": f"{PARENT}/backups/b"},
            )
        self.assertEqual(self.session.request.call_count, 1)

    @patch("clients.time.sleep")
    def test_create_backup_retried_on_unprocessed_status(self, mock_sleep):
        """Test 503 and connect timeouts still allow resending a create."""
        operation = {"name": f"{PARENT}/backups/b/operations/o"}
        self.session.request.side_effect = [
            _response(503, {"error": {"message": "unavailable"}}),
            requests.exceptions.ConnectTimeout("no connection"),
            _response(payload=operation),
        ]

        result = self.client.unary_call(
            rpc.CREATE_BACKUP,
            {"parent": PARENT, "backupId": "b", "backup": {"expireTime": "2030-01-01T00:00:00Z"}},
        )

        self.assertEqual(result, operation)
        self.assertEqual(self.session.request.call_count, 3)

    @patch("clients.time.sleep")
    def test_get_retried_after_read_timeout(self, mock_sleep):
        self.session.request.side_effect = [
            requests.exceptions.ReadTimeout("slow"),
            _response(payload={"name": "x"}),
        ]
        self.client.unary_call(rpc.GET_BACKUP, {"name": f"{PARENT}/backups/b"})
        self.assertEqual(self.session.request.call_count, 2)

    def test_calculate_delay_capped(self):
        self.assertLessEqual(self.client._calculate_delay(10), 60.0)
        self.assertGreater(self.client._calculate_delay(0), 0)


if __name__ == "__main__":
    unittest.main()
