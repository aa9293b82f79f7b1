from __future__ import annotations

import tablequery_py as tablequery


def test_init_exposes_lazy_exports_via_getattr() -> None:
    assert tablequery._normalize_repo_version("1.2.3") == "1.2.3"
    assert tablequery._normalize_repo_version("1.2.3-rc.4") == "1.2.3rc4"

    assert callable(tablequery.Table)
    assert callable(tablequery.Query)
    assert callable(tablequery.ParallelScan)
    assert callable(tablequery.create_dynamodb_client)
    assert callable(tablequery.instrument_boto3_client)

    for name in tablequery.__all__:
        assert getattr(tablequery, name) is not None
