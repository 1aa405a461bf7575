import unittest
from unittest.mock import MagicMock

from postgrest.exceptions import APIError
from supabase import AuthError as PlatformAuthError

from playground.auth import (
    AuthError,
    InMemoryClaimsVerifier,
    SupabaseClaimsVerifier,
    extract_bearer_token,
)
from playground.db import SINGLE_ROW_ERROR, DataAccessError, SupabaseTableClient
from playground.storage import (
    S3StorageClient,
    StorageError,
    SupabaseStorageClient,
    build_upload_path,
    rewrite_internal_url,
    sanitize_file_name,
)


class SupabaseTableClientTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.table = self.client.table.return_value
        self.db = SupabaseTableClient(self.client)

    def test_insert_returns_single_row(self):
        self.table.insert.return_value.execute.return_value = MagicMock(
            data=[{"id": 1, "task": "x"}]
        )
        row = self.db.insert("todos", {"task": "x"})
        self.assertEqual(row, {"id": 1, "task": "x"})
        self.client.table.assert_called_once_with("todos")
        self.table.insert.assert_called_once_with({"task": "x"})

    def test_select_applies_each_filter(self):
        query = self.table.select.return_value
        query.eq.return_value = query
        query.execute.return_value = MagicMock(data=[{"id": 2}])

        rows = self.db.select("todos", {"user_id": "u1", "is_complete": True})
        self.assertEqual(rows, [{"id": 2}])
        self.table.select.assert_called_once_with("*")
        query.eq.assert_any_call("user_id", "u1")
        query.eq.assert_any_call("is_complete", True)
        self.assertEqual(query.eq.call_count, 2)

    def test_update_with_no_rows_fails(self):
        chain = self.table.update.return_value.eq.return_value
        chain.execute.return_value = MagicMock(data=[])
        with self.assertRaises(DataAccessError) as ctx:
            self.db.update_by_id("todos", 9, {"task": "y"})
        self.assertEqual(ctx.exception.message, SINGLE_ROW_ERROR)
        self.table.update.return_value.eq.assert_called_once_with("id", 9)

    def test_api_error_translated(self):
        chain = self.table.delete.return_value.eq.return_value
        chain.execute.side_effect = APIError(
            {
                "message": "permission denied for table todos",
                "code": "42501",
                "hint": None,
                "details": None,
            }
        )
        with self.assertRaises(DataAccessError) as ctx:
            self.db.delete_by_id("todos", 1)
        self.assertEqual(ctx.exception.message, "permission denied for table todos")
        self.assertEqual(ctx.exception.code, "42501")


class StorageTests(unittest.TestCase):
    def test_sanitize_file_name(self):
        self.assertEqual(sanitize_file_name("my photo (1).png"), "my_photo__1_.png")
        self.assertEqual(sanitize_file_name("report-v2.final.pdf"), "report-v2.final.pdf")

    def test_build_upload_path_is_unique(self):
        first = build_upload_path("a b.txt")
        second = build_upload_path("a b.txt")
        self.assertNotEqual(first, second)
        self.assertTrue(first.endswith("-a_b.txt"))

    def test_rewrite_internal_url(self):
        self.assertEqual(
            rewrite_internal_url(
                "http://kong:8000/storage/v1/x", "http://kong:8000", "http://localhost:54321"
            ),
            "http://localhost:54321/storage/v1/x",
        )
        self.assertEqual(
            rewrite_internal_url(
                "https://abc.supabase.co/x", "http://kong:8000", "http://localhost:54321"
            ),
            "https://abc.supabase.co/x",
        )

    def test_supabase_storage(self):
        client = MagicMock()
        client.storage.from_.return_value.create_signed_upload_url.return_value = {
            "signed_url": "https://abc.supabase.co/sign/p?token=t",
            "token": "t",
            "path": "p",
        }
        signed = SupabaseStorageClient(client).create_signed_upload_url("bucket", "p")
        client.storage.from_.assert_called_once_with("bucket")
        self.assertEqual(signed.token, "t")
        self.assertEqual(signed.path, "p")

    def test_supabase_storage_failure(self):
        client = MagicMock()
        client.storage.from_.return_value.create_signed_upload_url.side_effect = (
            RuntimeError("Bucket not found")
        )
        with self.assertRaises(StorageError):
            SupabaseStorageClient(client).create_signed_upload_url("missing", "p")

    def test_s3_presigned_put(self):
        storage = S3StorageClient(
            region="us-east-1",
            endpoint="",
            access_key_id="AKIAEXAMPLE",
            secret_access_key="secret",
        )
        signed = storage.create_signed_upload_url("uploads", "abc-file.txt")
        self.assertIn("uploads", signed.signed_url)
        self.assertIn("abc-file.txt", signed.signed_url)
        self.assertTrue(signed.token)
        self.assertIn(signed.token, signed.signed_url)


class AuthTests(unittest.TestCase):
    def test_extract_bearer_token(self):
        self.assertEqual(extract_bearer_token("Bearer abc"), "abc")
        self.assertEqual(extract_bearer_token("bearer abc"), "abc")
        self.assertEqual(extract_bearer_token("abc"), "abc")
        self.assertIsNone(extract_bearer_token("Bearer "))
        self.assertIsNone(extract_bearer_token(None))

    def test_in_memory_verifier(self):
        verifier = InMemoryClaimsVerifier()
        verifier.register("t", {"sub": "u"})
        self.assertEqual(verifier.get_claims("t"), {"sub": "u"})
        with self.assertRaises(AuthError):
            verifier.get_claims("other")

    def test_supabase_verifier_maps_user_to_claims(self):
        client = MagicMock()
        client.auth.get_user.return_value = MagicMock(
            user=MagicMock(
                id="u-1",
                email="ada@example.com",
                role="authenticated",
                aud="authenticated",
                phone="",
                app_metadata={"provider": "email"},
                user_metadata={},
            )
        )
        claims = SupabaseClaimsVerifier(client).get_claims("jwt")
        client.auth.get_user.assert_called_once_with("jwt")
        self.assertEqual(claims["sub"], "u-1")
        self.assertEqual(claims["email"], "ada@example.com")
        self.assertEqual(claims["app_metadata"], {"provider": "email"})

    def test_supabase_verifier_rejects_bad_token(self):
        client = MagicMock()
        client.auth.get_user.side_effect = PlatformAuthError("invalid JWT", None)
        with self.assertRaises(AuthError):
            SupabaseClaimsVerifier(client).get_claims("jwt")


if __name__ == "__main__":
    unittest.main()
