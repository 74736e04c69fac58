"""
Tests for the account registry
"""

import pytest

from drawtask.accounts import get_default_account, mask_api_key
from drawtask.errors import NotFoundError, ValidationError
from drawtask.models import Account

from .helpers import read_data_file, run

KEY = "sk-1234567890abcdef"


def defaults_in(data_file):
    return [a["id"] for a in read_data_file(data_file)["apiAccounts"] if a["isDefault"]]


class TestMaskApiKey:

    def test_long_key(self):
        assert mask_api_key("sk-1234567890abcdef") == "sk-1****cdef"

    def test_exactly_eight_characters(self):
        assert mask_api_key("abcdefgh") == "abcd****efgh"

    @pytest.mark.parametrize("key", ["a", "abc", "abcd", "abcdefg"])
    def test_short_keys_fully_masked(self, key):
        assert mask_api_key(key) == "****"

    @pytest.mark.parametrize("key", ["", None])
    def test_empty(self, key):
        assert mask_api_key(key) == ""


class TestAdd:

    def test_add_initializes_counters(self, accounts, data_file):
        account = run(accounts.add({"name": "main", "provider": "volcengine", "apiKey": KEY}))

        assert account["id"].startswith("acc_")
        assert account["usageCount"] == 0
        assert account["successCount"] == 0
        assert account["failureCount"] == 0
        assert account["isDefault"] is False
        assert account["endpoint"] == "" and account["modelId"] == ""
        assert account["apiKey"] == "sk-1****cdef"

        stored = read_data_file(data_file)["apiAccounts"][0]
        assert stored["apiKey"] == KEY

    @pytest.mark.parametrize("fields", [
        {"apiKey": KEY},
        {"name": "main"},
        {"name": "", "apiKey": KEY},
        {},
    ])
    def test_missing_name_or_key(self, accounts, data_file, fields):
        with pytest.raises(ValidationError):
            run(accounts.add(fields))
        assert not data_file.exists()

    def test_unknown_provider_is_stored(self, accounts):
        account = run(accounts.add({"name": "mj", "provider": "midjourney", "apiKey": KEY}))
        assert account["provider"] == "midjourney"

    def test_new_default_clears_others(self, accounts, data_file):
        first = run(accounts.add({"name": "a", "apiKey": KEY, "isDefault": True}))
        second = run(accounts.add({"name": "b", "apiKey": KEY, "isDefault": True}))

        assert defaults_in(data_file) == [second["id"]]
        assert first["id"] != second["id"]


class TestList:

    def test_keys_are_masked(self, accounts):
        run(accounts.add({"name": "a", "apiKey": KEY}))
        run(accounts.add({"name": "b", "apiKey": "short"}))

        listed = run(accounts.list())
        assert [a["apiKey"] for a in listed] == ["sk-1****cdef", "****"]


class TestUpdate:

    def test_merges_only_provided_fields(self, accounts, data_file):
        account = run(accounts.add({
            "name": "a", "provider": "jimeng", "apiKey": KEY, "endpoint": "https://x", "modelId": "m1"
        }))

        run(accounts.update(account["id"], {"modelId": "m2", "name": ""}))

        stored = read_data_file(data_file)["apiAccounts"][0]
        assert stored["name"] == "a"
        assert stored["provider"] == "jimeng"
        assert stored["apiKey"] == KEY
        assert stored["endpoint"] == "https://x"
        assert stored["modelId"] == "m2"

    def test_endpoint_can_be_cleared(self, accounts, data_file):
        account = run(accounts.add({"name": "a", "apiKey": KEY, "endpoint": "https://x"}))
        run(accounts.update(account["id"], {"endpoint": ""}))
        assert read_data_file(data_file)["apiAccounts"][0]["endpoint"] == ""

    def test_unknown_id(self, accounts):
        with pytest.raises(NotFoundError):
            run(accounts.update("acc_missing", {"name": "x"}))

    def test_default_invariant(self, accounts, data_file):
        a = run(accounts.add({"name": "a", "apiKey": KEY, "isDefault": True}))
        b = run(accounts.add({"name": "b", "apiKey": KEY}))

        run(accounts.update(b["id"], {"isDefault": True}))
        assert defaults_in(data_file) == [b["id"]]

        run(accounts.update(a["id"], {"isDefault": False}))
        assert defaults_in(data_file) == [b["id"]]

        run(accounts.update(b["id"], {"isDefault": False}))
        assert defaults_in(data_file) == []


class TestRemove:

    def test_remove(self, accounts):
        account = run(accounts.add({"name": "a", "apiKey": KEY}))
        run(accounts.remove(account["id"]))
        assert run(accounts.list()) == []

    def test_remove_unknown(self, accounts):
        with pytest.raises(NotFoundError):
            run(accounts.remove("acc_missing"))


class TestSetDefault:

    def test_exactly_one_default(self, accounts, data_file):
        ids = [run(accounts.add({"name": n, "apiKey": KEY, "isDefault": True}))["id"] for n in "abc"]

        for account_id in [ids[0], ids[2], ids[1], ids[1]]:
            result = run(accounts.set_default(account_id))
            assert result["isDefault"] is True
            assert defaults_in(data_file) == [account_id]

    def test_unknown_id_keeps_current_default(self, accounts, data_file):
        account = run(accounts.add({"name": "a", "apiKey": KEY, "isDefault": True}))

        with pytest.raises(NotFoundError):
            run(accounts.set_default("acc_missing"))
        assert defaults_in(data_file) == [account["id"]]


class TestDefaultAccount:

    def test_flagged_account_wins(self):
        accounts = [Account(id="1", name="a"), Account(id="2", name="b", is_default=True)]
        assert get_default_account(accounts).id == "2"

    def test_falls_back_to_first(self):
        accounts = [Account(id="1", name="a"), Account(id="2", name="b")]
        assert get_default_account(accounts).id == "1"

    def test_none_when_empty(self):
        assert get_default_account([]) is None

    def test_registry_helper(self, accounts):
        assert run(accounts.get_default_account()) is None
        run(accounts.add({"name": "a", "apiKey": KEY}))
        assert run(accounts.get_default_account()).name == "a"
