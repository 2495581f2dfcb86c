from apiscanner.core.config import Settings, parse_extra_headers


def test_from_env_fills_gaps():
    env = {"CLIENT_ID": "team042", "CLIENT_SECRET": "s3cr3t", "BANK_TOKEN": "tok"}
    s = Settings.from_env(env)
    assert (s.client_id, s.client_secret, s.env_token) == ("team042", "s3cr3t", "tok")
    assert s.requesting_bank == "team042"


def test_explicit_values_win():
    env = {"CLIENT_ID": "team042", "CLIENT_SECRET": "s3cr3t"}
    s = Settings.from_env(env, client_id="team007", requesting_bank="bank-x")
    assert s.client_id == "team007"
    assert s.client_secret == "s3cr3t"
    assert s.requesting_bank == "bank-x"


def test_defaults():
    s = Settings.from_env({})
    assert s.env_token == ""
    assert s.verify_tls is True
    assert (s.read_delay, s.mutating_delay) == (0.3, 1.0)
    assert s.headers == {}


def test_parse_extra_headers():
    raw = ["X-Trace: 1", "Cookie: a=b: c", "broken", ": value", "Empty:", " X-Pad :  v "]
    assert parse_extra_headers(raw) == {"X-Trace": "1", "Cookie": "a=b: c", "X-Pad": "v"}
    assert parse_extra_headers(None) == {}
