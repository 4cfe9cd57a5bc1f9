from danm_cleaner.settings import Settings, _env_int, _env_str


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("DANM_CLEANER_TEST_INT", "7")
    monkeypatch.setenv("DANM_CLEANER_TEST_BAD", "seven")
    monkeypatch.setenv("DANM_CLEANER_TEST_STR", "  macvlan ")
    monkeypatch.setenv("DANM_CLEANER_TEST_BLANK", "  ")

    assert _env_int("DANM_CLEANER_TEST_INT", 5) == 7
    assert _env_int("DANM_CLEANER_TEST_BAD", 5) == 5
    assert _env_int("DANM_CLEANER_TEST_UNSET", 5) == 5
    assert _env_str("DANM_CLEANER_TEST_STR", "ipvlan") == "macvlan"
    assert _env_str("DANM_CLEANER_TEST_BLANK", "ipvlan") == "ipvlan"


def test_defaults_match_danm():
    cfg = Settings(kubeconfig="", hostname="")

    assert cfg.api_group == "danm.k8s.io"
    assert (cfg.endpoint_plural, cfg.network_plural) == ("danmeps", "danmnets")
    assert cfg.sandbox_label == "io.kubernetes.docker.type"
    assert cfg.sandbox_value == "podsandbox"
    assert cfg.list_page_size == 500
