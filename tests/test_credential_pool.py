import pytest

from batch_ocr.credentials import CredentialPool, mask_credential
from batch_ocr.errors import EmptyPoolError


class TestActiveCredentials:
    def test_filters_empty_entries_and_keeps_order(self):
        pool = CredentialPool(["a", "", "b", "   ", "c"])

        assert pool.active_credentials() == ["a", "b", "c"]
        assert len(pool) == 3

    def test_values_are_trimmed(self):
        pool = CredentialPool(["  a  ", "b\n"])

        assert pool.active_credentials() == ["a", "b"]

    def test_duplicates_are_kept(self):
        pool = CredentialPool(["a", "a"])

        assert pool.active_credentials() == ["a", "a"]

    @pytest.mark.parametrize("credentials", [None, [], [""], ["", "  "]])
    def test_empty_pool_raises(self, credentials):
        pool = CredentialPool(credentials)

        assert pool.is_empty()
        with pytest.raises(EmptyPoolError):
            pool.active_credentials()
        with pytest.raises(EmptyPoolError):
            pool.current()
        with pytest.raises(EmptyPoolError):
            pool.advance()


class TestRotation:
    def test_current_has_no_side_effect(self):
        pool = CredentialPool(["a", "b"])

        assert pool.current() == "a"
        assert pool.current() == "a"
        assert pool.cursor == 0

    def test_advance_wraps_around(self):
        pool = CredentialPool(["a", "b", "c"])

        assert pool.advance() == "b"
        assert pool.advance() == "c"
        assert pool.advance() == "a"
        assert pool.cursor == 0

    def test_single_credential_advance_stays_put(self):
        pool = CredentialPool(["only"])

        pool.advance()

        assert pool.cursor == 0
        assert pool.current() == "only"

    def test_cursor_skips_empty_entries(self):
        pool = CredentialPool(["a", "", "b"])

        pool.advance()

        assert pool.current() == "b"


class TestMutation:
    def test_add_extends_rotation(self):
        pool = CredentialPool(["a"])
        pool.add("b")

        assert pool.advance() == "b"

    def test_shrinking_pool_reads_cursor_modulo_new_size(self):
        pool = CredentialPool(["a", "b", "c"])
        pool.advance()
        pool.advance()  # cursor on "c"

        pool.remove(2)

        # cursor 2 over ["a", "b"]
        assert pool.current() == "a"
        assert pool.advance() == "b"

    def test_replace_trims(self):
        pool = CredentialPool(["a", "b"])
        pool.replace(1, "  z  ")

        assert pool.credentials == ["a", "z"]

    def test_replace_with_blank_deactivates(self):
        pool = CredentialPool(["a", "b"])
        pool.replace(0, "")

        assert pool.active_credentials() == ["b"]
        assert pool.credentials == ["", "b"]

    def test_set_credentials_keeps_cursor(self):
        pool = CredentialPool(["a", "b"])
        pool.advance()

        pool.set_credentials(["x", "y", "z"])

        assert pool.cursor == 1
        assert pool.current() == "y"

    def test_masked_hides_secrets(self):
        pool = CredentialPool(["AIzaSyABCDEF1234", "", "abc"])

        assert pool.masked() == ["****1234", "****"]


class TestMaskCredential:
    def test_shows_last_four(self):
        assert mask_credential("secret-value-9876") == "****9876"

    def test_short_values_fully_masked(self):
        assert mask_credential("abcd") == "****"
