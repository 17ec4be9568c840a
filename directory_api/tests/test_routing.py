import pytest

from conftest import InMemorySlugLookup, PLACE
from src.core.errors import NotFoundError
from src.schemas.resolution import (
    EntityType,
    Lang,
    RedirectTo,
    RequestTarget,
    ResolutionResult,
    Serve,
    SlugTriple,
)
from src.services.routing import ResolutionCache, RoutingGateway, build_public_path
from src.services.slug_resolver import SlugResolver


def _result(slug: str, needs_redirect: bool, entity_type: EntityType = EntityType.PLACE) -> ResolutionResult:
    return ResolutionResult(
        site_id="S1",
        entity_type=entity_type,
        entity_id="P1",
        canonical=SlugTriple(lang=Lang.HU, site_key="site1", slug=slug),
        needs_redirect=needs_redirect,
    )


def _gateway(lookup: InMemorySlugLookup, ttl: float = 30) -> RoutingGateway:
    return RoutingGateway(SlugResolver(lookup), ResolutionCache(ttl_seconds=ttl))


def test_build_public_path_per_entity_type() -> None:
    triple = SlugTriple(lang=Lang.EN, site_key="site1", slug="about")
    assert build_public_path(triple, EntityType.PLACE) == "/en/site1/place/about"
    assert build_public_path(triple, EntityType.EVENT) == "/en/site1/event/about"
    assert build_public_path(triple, EntityType.STATIC_PAGE) == "/en/site1/static-page/about"
    assert build_public_path(triple, EntityType.LEGAL_PAGE) == "/en/site1/legal/about"


def test_request_target_from_path() -> None:
    target = RequestTarget.from_path("/hu/site1/place/regi-nev", query="?a=1", fragment="#top")

    assert target.triple == SlugTriple(lang=Lang.HU, site_key="site1", slug="regi-nev")
    assert target.query == "a=1"
    assert target.fragment == "top"


def test_request_target_rejects_other_paths() -> None:
    with pytest.raises(ValueError):
        RequestTarget.from_path("/hu/site1/place")
    with pytest.raises(ValueError):
        RequestTarget.from_path("/xx/site1/place/foo")


def test_route_serves_canonical_request() -> None:
    current = RequestTarget.from_path("/hu/site1/place/uj-nev")
    decision = RoutingGateway(SlugResolver(InMemorySlugLookup())).route(current, _result("uj-nev", False))

    assert isinstance(decision, Serve)


def test_route_redirect_preserves_query_and_fragment() -> None:
    current = RequestTarget.from_path("/hu/site1/place/regi-nev", query="utm=x&b=2", fragment="map")
    decision = RoutingGateway(SlugResolver(InMemorySlugLookup())).route(current, _result("uj-nev", True))

    assert isinstance(decision, RedirectTo)
    assert decision.location == "/hu/site1/place/uj-nev?utm=x&b=2#map"


def test_route_never_redirects_to_the_current_url() -> None:
    current = RequestTarget.from_path("/hu/site1/place/uj-nev", query="a=1", fragment="f")
    # A stale result claiming a redirect to the very URL being served.
    decision = RoutingGateway(SlugResolver(InMemorySlugLookup())).route(current, _result("uj-nev", True))

    assert isinstance(decision, Serve)


def test_route_redirects_canonical_slug_under_wrong_segment() -> None:
    current = RequestTarget.from_path("/hu/site1/event/uj-nev")
    decision = RoutingGateway(SlugResolver(InMemorySlugLookup())).route(current, _result("uj-nev", False))

    assert isinstance(decision, RedirectTo)
    assert decision.location == "/hu/site1/place/uj-nev"


@pytest.mark.asyncio
async def test_navigate_redirects_old_slug(renamed_place_lookup) -> None:
    decision = await _gateway(renamed_place_lookup).navigate(
        RequestTarget.from_path("/hu/site1/place/regi-nev")
    )

    assert isinstance(decision, RedirectTo)
    assert decision.location == "/hu/site1/place/uj-nev"


@pytest.mark.asyncio
async def test_resolve_uses_cache(renamed_place_lookup) -> None:
    gateway = _gateway(renamed_place_lookup)

    first = await gateway.resolve(Lang.HU, "site1", "uj-nev")
    second = await gateway.resolve(Lang.HU, "site1", "uj-nev")

    assert first == second
    assert renamed_place_lookup.calls["find_binding"] == 1


@pytest.mark.asyncio
async def test_zero_ttl_disables_cache(renamed_place_lookup) -> None:
    gateway = _gateway(renamed_place_lookup, ttl=0)

    await gateway.resolve(Lang.HU, "site1", "uj-nev")
    await gateway.resolve(Lang.HU, "site1", "uj-nev")

    assert renamed_place_lookup.calls["find_binding"] == 2
    assert len(gateway.cache) == 0


@pytest.mark.asyncio
async def test_not_found_is_not_cached() -> None:
    lookup = InMemorySlugLookup()
    gateway = _gateway(lookup)

    with pytest.raises(NotFoundError):
        await gateway.resolve(Lang.HU, "site1", "uj-nev")

    lookup.add(Lang.HU, "site1", "uj-nev", PLACE, canonical=True)
    result = await gateway.resolve(Lang.HU, "site1", "uj-nev")
    assert result.needs_redirect is False


@pytest.mark.asyncio
async def test_invalidate_drops_cached_resolution(renamed_place_lookup) -> None:
    gateway = _gateway(renamed_place_lookup)
    triple = SlugTriple(lang=Lang.HU, site_key="site1", slug="uj-nev")

    await gateway.resolve(Lang.HU, "site1", "uj-nev")
    gateway.cache.invalidate(triple)
    await gateway.resolve(Lang.HU, "site1", "uj-nev")

    assert renamed_place_lookup.calls["find_binding"] == 2


@pytest.mark.parametrize("ttl", [-1, 61, 3600])
def test_cache_ttl_is_bounded(ttl: float) -> None:
    with pytest.raises(ValueError):
        ResolutionCache(ttl_seconds=ttl)


@pytest.mark.asyncio
async def test_navigate_fixes_entity_segment(renamed_place_lookup) -> None:
    decision = await _gateway(renamed_place_lookup).navigate(
        RequestTarget.from_path("/hu/site1/event/uj-nev", query="a=1")
    )

    assert isinstance(decision, RedirectTo)
    assert decision.location == "/hu/site1/place/uj-nev?a=1"
    assert decision.resolution.needs_redirect is False


@pytest.mark.asyncio
async def test_navigate_redirects_alias_site_key(renamed_place_lookup) -> None:
    decision = await _gateway(renamed_place_lookup).navigate(
        RequestTarget.from_path("/hu/etyek/place/regi-nev")
    )

    assert isinstance(decision, RedirectTo)
    assert decision.location == "/hu/site1/place/uj-nev"


@pytest.mark.asyncio
async def test_invalidate_entity_drops_every_alias(renamed_place_lookup) -> None:
    gateway = _gateway(renamed_place_lookup)
    await gateway.resolve(Lang.HU, "site1", "uj-nev")
    await gateway.resolve(Lang.HU, "site1", "regi-nev")
    await gateway.resolve(Lang.HU, "site1", "szuret")

    dropped = gateway.cache.invalidate_entity(PLACE)

    assert dropped == 2
    assert len(gateway.cache) == 1
