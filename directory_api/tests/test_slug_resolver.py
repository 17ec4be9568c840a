import pytest
from sqlalchemy.exc import OperationalError

from conftest import EVENT, PLACE, InMemorySlugLookup
from src.core.errors import NotFoundError, UnavailableError
from src.schemas.resolution import EntityType, Lang, SlugTriple
from src.services.slug_resolver import SlugResolver


@pytest.mark.asyncio
async def test_canonical_slug_does_not_redirect(renamed_place_lookup) -> None:
    result = await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "site1", "uj-nev")

    assert result.needs_redirect is False
    assert result.canonical == SlugTriple(lang=Lang.HU, site_key="site1", slug="uj-nev")
    assert result.entity_type is EntityType.PLACE
    assert result.entity_id == "P1"
    assert result.site_id == "S1"
    assert renamed_place_lookup.calls["find_canonical"] == 0


@pytest.mark.asyncio
async def test_old_slug_redirects_to_new_name(renamed_place_lookup) -> None:
    result = await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "site1", "regi-nev")

    assert result.needs_redirect is True
    assert result.canonical == SlugTriple(lang=Lang.HU, site_key="site1", slug="uj-nev")
    assert result.entity_id == "P1"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "lang,site_key,slug",
    [
        (Lang.HU, "site1", "regi-nev"),
        (Lang.HU, "site1", "uj-nev"),
        (Lang.EN, "site1", "new-name"),
        (Lang.HU, "site1", "szuret"),
        (Lang.HU, "etyek", "regi-nev"),
        (Lang.HU, "etyek", "szuret"),
    ],
)
async def test_redirect_converges_in_one_hop(renamed_place_lookup, lang, site_key, slug) -> None:
    resolver = SlugResolver(renamed_place_lookup)

    first = await resolver.resolve(lang, site_key, slug)
    target = first.canonical
    second = await resolver.resolve(target.lang, target.site_key, target.slug)

    assert second.needs_redirect is False
    assert second.canonical == target


@pytest.mark.asyncio
async def test_unknown_slug_is_not_found(renamed_place_lookup) -> None:
    with pytest.raises(NotFoundError):
        await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "site1", "nincs-ilyen")


@pytest.mark.asyncio
async def test_slug_is_scoped_by_language_and_site(renamed_place_lookup) -> None:
    resolver = SlugResolver(renamed_place_lookup)
    with pytest.raises(NotFoundError):
        await resolver.resolve(Lang.EN, "site1", "uj-nev")
    with pytest.raises(NotFoundError):
        await resolver.resolve(Lang.HU, "site2", "uj-nev")


@pytest.mark.asyncio
async def test_alias_site_key_redirects_to_primary_key(renamed_place_lookup) -> None:
    result = await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "etyek", "uj-nev")

    assert result.needs_redirect is True
    assert result.canonical == SlugTriple(lang=Lang.HU, site_key="site1", slug="uj-nev")


@pytest.mark.asyncio
async def test_alias_site_key_and_old_slug_redirect_together(renamed_place_lookup) -> None:
    result = await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "etyek", "regi-nev")

    assert result.needs_redirect is True
    assert result.canonical == SlugTriple(lang=Lang.HU, site_key="site1", slug="uj-nev")


@pytest.mark.asyncio
async def test_explicit_site_key_redirect_wins_over_primary(renamed_place_lookup) -> None:
    spring = renamed_place_lookup.add_site_key(Lang.HU, "tavasz", "S1", primary=False)
    renamed_place_lookup.add_site_key(Lang.HU, "kampany", "S1", primary=False, redirect_to=spring)

    result = await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "kampany", "uj-nev")

    assert result.canonical.site_key == "tavasz"
    assert result.needs_redirect is True


@pytest.mark.asyncio
async def test_inactive_redirect_target_falls_back_to_primary(renamed_place_lookup) -> None:
    retired = renamed_place_lookup.add_site_key(Lang.HU, "tel", "S1", primary=False, active=False)
    renamed_place_lookup.add_site_key(Lang.HU, "kampany", "S1", primary=False, redirect_to=retired)

    result = await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "kampany", "uj-nev")

    assert result.canonical.site_key == "site1"


@pytest.mark.asyncio
async def test_inactive_site_key_is_not_found(renamed_place_lookup) -> None:
    renamed_place_lookup.add_site_key(Lang.HU, "bezart", "S1", primary=False, active=False)

    with pytest.raises(NotFoundError):
        await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "bezart", "uj-nev")


@pytest.mark.asyncio
async def test_alias_key_without_primary_is_served_as_is() -> None:
    lookup = InMemorySlugLookup()
    lookup.add_site_key(Lang.DE, "alt", "S7", primary=False)
    lookup.add(Lang.DE, "alt", "weinfest", EVENT, canonical=True)

    result = await SlugResolver(lookup).resolve(Lang.DE, "alt", "weinfest")

    assert result.needs_redirect is False
    assert result.canonical.site_key == "alt"


@pytest.mark.asyncio
async def test_deactivated_slug_is_not_found(renamed_place_lookup) -> None:
    renamed_place_lookup.add(Lang.HU, "site1", "bezart", PLACE, canonical=False, active=False)

    with pytest.raises(NotFoundError):
        await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "site1", "bezart")


@pytest.mark.asyncio
async def test_explicit_slug_redirect_skips_canonical_lookup(renamed_place_lookup) -> None:
    renamed_place_lookup.add(Lang.HU, "site1", "szuret-2023", EVENT, canonical=False, redirect_to="szuret")

    result = await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "site1", "szuret-2023")

    assert result.needs_redirect is True
    assert result.canonical.slug == "szuret"
    assert renamed_place_lookup.calls["find_canonical"] == 0


@pytest.mark.asyncio
async def test_canonical_moved_back_onto_requested_triple_does_not_redirect() -> None:
    class RacingLookup(InMemorySlugLookup):
        # The binding was read while stale; by the time the canonical is fetched
        # the same slug has been promoted again.
        async def find_canonical(self, lang, entity):
            binding = await self.find_binding(lang, "site1", "regi-nev")
            return binding.model_copy(update={"is_canonical": True})

    lookup = RacingLookup()
    lookup.add(Lang.HU, "site1", "regi-nev", PLACE, canonical=False)

    result = await SlugResolver(lookup).resolve(Lang.HU, "site1", "regi-nev")

    assert result.needs_redirect is False
    assert result.canonical.slug == "regi-nev"


@pytest.mark.asyncio
async def test_missing_canonical_serves_binding_as_is() -> None:
    lookup = InMemorySlugLookup()
    lookup.add(Lang.DE, "site1", "alter-name", EVENT, canonical=False)

    result = await SlugResolver(lookup).resolve(Lang.DE, "site1", "alter-name")

    assert result.needs_redirect is False
    assert result.canonical.slug == "alter-name"


@pytest.mark.asyncio
async def test_lookup_failure_is_unavailable_not_not_found(renamed_place_lookup) -> None:
    renamed_place_lookup.fail_with = OperationalError("SELECT 1", {}, Exception("connection refused"))

    with pytest.raises(UnavailableError) as excinfo:
        await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "site1", "uj-nev")

    assert not isinstance(excinfo.value, NotFoundError)
    assert isinstance(excinfo.value.__cause__, OperationalError)


@pytest.mark.asyncio
async def test_not_found_raised_by_lookup_passes_through(renamed_place_lookup) -> None:
    renamed_place_lookup.fail_with = NotFoundError("gone")

    with pytest.raises(NotFoundError):
        await SlugResolver(renamed_place_lookup).resolve(Lang.HU, "site1", "uj-nev")
