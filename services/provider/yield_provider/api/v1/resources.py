"""资源目录接口：链风险画像、资产画像与收益风险手册查询。"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from yield_provider.api.v1.envelope import make_error, make_response
from yield_provider.domain.catalog import get_asset_profile, get_chain_risk, get_yield_risk_playbook

router = APIRouter(prefix="/resources")

CHAIN_RISK_RESOURCE = "defi_chain_risk_catalog"
ASSET_PROFILE_RESOURCE = "defi_asset_profile_catalog"
PLAYBOOK_RESOURCE = "defi_yield_risk_playbook"


@router.get("/chain-risk")
def chain_risk(chain: str | None = None) -> JSONResponse:
    """按链名返回链风险画像。"""
    if not chain:
        return make_error("Missing required query parameter: chain", 400, resource=CHAIN_RISK_RESOURCE)
    return make_response(get_chain_risk(chain), resource=CHAIN_RISK_RESOURCE, input={"chain": chain})


@router.get("/asset-profiles")
def asset_profiles(
    asset: str | None = None,
    chain: str | None = None,
    detail_level: str | None = None,
) -> JSONResponse:
    """按代币符号返回资产画像；detail_level=full 时返回完整画像。
    参数:
    - asset: 代币符号，必填。
    - chain: 可选链名，仅用于上下文说明。
    - detail_level: summary（默认）或 full。
    """
    if not asset:
        return make_error("Missing required query parameter: asset", 400, resource=ASSET_PROFILE_RESOURCE)
    return make_response(
        get_asset_profile(asset, chain, detail_level),
        resource=ASSET_PROFILE_RESOURCE,
        input={"asset": asset, "chain": chain or None, "detail_level": detail_level or "summary"},
    )


@router.get("/yield-risk-playbook")
def yield_risk_playbook(
    risk_tolerance: str | None = None,
    archetype: str | None = None,
    use_case: str | None = None,
) -> JSONResponse:
    if not risk_tolerance:
        return make_error("Missing required query parameter: risk_tolerance", 400, resource=PLAYBOOK_RESOURCE)
    return make_response(
        get_yield_risk_playbook(risk_tolerance, archetype, use_case),
        resource=PLAYBOOK_RESOURCE,
        input={"risk_tolerance": risk_tolerance, "archetype": archetype or None, "use_case": use_case or None},
    )
