import httpx
import pytest

from services.lookups.gbif import GbifClient, build_tile_url
from services.lookups.inaturalist import INaturalistClient, is_appropriate_observation, to_large_url
from services.lookups.wikimedia import WikimediaClient
from services.lookups.xeno_canto import XenoCantoClient, fix_xeno_canto_url, select_sounds


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def recording(rec_id, rec_type, **extra):
    data = {
        "id": rec_id,
        "gen": "Turdus",
        "sp": "migratorius",
        "en": "American Robin",
        "file": f"https://xeno-canto.org/{rec_id}/download",
        "type": rec_type,
        "q": "A",
        "rec": "Recorder",
        "lic": "//creativecommons.org/licenses/by-nc-sa/4.0/",
        "length": "0:42",
        "loc": "Somewhere",
        "cnt": "United States",
        "osci": {"large": f"//xeno-canto.org/sounds/uploaded/ABCDEF/ffts/XC{rec_id}-large.png"},
    }
    data.update(extra)
    return data


class TestXenoCanto:
    def test_fix_url_protocol_relative(self):
        assert fix_xeno_canto_url("//xeno-canto.org/sounds/x.png") == "https://xeno-canto.org/sounds/x.png"

    def test_fix_url_download_link_rewritten(self):
        rec = recording("12345", "song", **{"file-name": "XC12345-robin.mp3"})
        assert fix_xeno_canto_url(rec["file"], rec) == "https://xeno-canto.org/sounds/uploaded/ABCDEF/XC12345-robin.mp3"

    def test_fix_url_download_link_default_file_name(self):
        rec = recording("777", "call")
        assert fix_xeno_canto_url(rec["file"], rec) == "https://xeno-canto.org/sounds/uploaded/ABCDEF/XC777.mp3"

    def test_fix_url_without_sonogram_is_left_alone(self):
        assert fix_xeno_canto_url("https://xeno-canto.org/9/download", {}) == "https://xeno-canto.org/9/download"
        assert fix_xeno_canto_url(None) == ""

    def test_select_sounds_keeps_two_of_each(self):
        recordings = [
            recording("1", "song"),
            recording("2", "call, song"),
            recording("3", "song"),
            recording("4", "call"),
            recording("5", "alarm call"),
            recording("6", "call"),
            recording("7", "drumming"),
        ]
        sounds = select_sounds(recordings)
        assert [(s.id, s.type) for s in sounds] == [("1", "song"), ("2", "song"), ("4", "call"), ("5", "call")]
        assert sounds[0].scientific_name == "Turdus migratorius"
        assert sounds[0].waveform == "https://xeno-canto.org/sounds/uploaded/ABCDEF/ffts/XC1-large.png"
        assert sounds[0].url == "https://xeno-canto.org/sounds/uploaded/ABCDEF/XC1.mp3"

    @pytest.mark.asyncio
    async def test_fetch_sounds_skipped_without_key(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with mock_client(handler) as http:
            assert await XenoCantoClient(http, None).fetch_sounds("Turdus migratorius") == []

    @pytest.mark.asyncio
    async def test_fetch_sounds_queries_quality_a(self):
        seen = {}

        def handler(request):
            seen["query"] = request.url.params["query"]
            seen["key"] = request.url.params["key"]
            return httpx.Response(200, json={"recordings": [recording("1", "song"), recording("4", "call")]})

        async with mock_client(handler) as http:
            sounds = await XenoCantoClient(http, "secret").fetch_sounds("Turdus migratorius")

        assert seen == {"query": 'sp:"Turdus migratorius" q:A', "key": "secret"}
        assert [s.type for s in sounds] == ["song", "call"]

    @pytest.mark.asyncio
    async def test_fetch_sounds_degrades_on_error_status(self):
        async with mock_client(lambda request: httpx.Response(503)) as http:
            assert await XenoCantoClient(http, "secret").fetch_sounds("Turdus migratorius") == []


class TestINaturalist:
    def test_to_large_url(self):
        assert to_large_url("https://static.inaturalist.org/photos/1/square.jpg") == "https://static.inaturalist.org/photos/1/large.jpg"
        assert to_large_url("https://static.inaturalist.org/photos/1/medium.jpeg?1") == "https://static.inaturalist.org/photos/1/large.jpeg?1"

    def test_inappropriate_observations(self):
        assert is_appropriate_observation({"annotations": [], "tags": [], "description": "Singing at dawn"})
        assert not is_appropriate_observation({"annotations": [{"term_id": 17, "controlled_value_id": 19}]})
        assert not is_appropriate_observation({"tags": ["Museum specimen"]})
        assert not is_appropriate_observation({"description": "Found as roadkill on the highway"})

    @pytest.mark.asyncio
    async def test_resolve_taxon_prefers_exact_match(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"results": [
                    {"id": 1, "name": "Turdus migratorius achrusterus", "rank": "subspecies"},
                    {"id": 2, "name": "Turdus migratorius", "rank": "species"},
                ]},
            )

        async with mock_client(handler) as http:
            taxon = await INaturalistClient(http).resolve_taxon("turdus migratorius")
        assert taxon.id == 2
        assert taxon.is_species_level

    @pytest.mark.asyncio
    async def test_resolve_taxon_rejects_unrelated_first_result(self):
        def handler(request):
            return httpx.Response(200, json={"results": [{"id": 9, "name": "Corvus corax", "rank": "species"}]})

        async with mock_client(handler) as http:
            assert await INaturalistClient(http).resolve_taxon("Turdus migratorius") is None

    @pytest.mark.asyncio
    async def test_species_photos_upgraded_and_limited(self):
        taxon_photos = [
            {"photo": {"id": i, "url": f"https://static.inaturalist.org/photos/{i}/square.jpg", "attribution": f"(c) {i}", "license_code": "cc-by"}}
            for i in range(8)
        ]

        def handler(request):
            assert request.url.path == "/v1/taxa/2"
            return httpx.Response(200, json={"results": [{"id": 2, "taxon_photos": taxon_photos}]})

        async with mock_client(handler) as http:
            photos = await INaturalistClient(http).fetch_species_photos(2)

        assert len(photos) == 6
        assert photos[0].url == "https://static.inaturalist.org/photos/0/large.jpg"
        assert photos[0].license == "cc-by"
        assert photos[0].provider == "inaturalist"

    @pytest.mark.asyncio
    async def test_species_photos_fall_back_to_default_photo(self):
        def handler(request):
            return httpx.Response(200, json={"results": [{"id": 2, "default_photo": {"medium_url": "https://p/1/medium.jpg"}}]})

        async with mock_client(handler) as http:
            photos = await INaturalistClient(http).fetch_species_photos(2)
        assert [(p.url, p.attribution, p.license) for p in photos] == [("https://p/1/large.jpg", "Unknown", "CC-BY-NC")]

    @pytest.mark.asyncio
    async def test_gendered_photo_skips_inappropriate_observations(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(
                200,
                json={"results": [
                    {"photos": [{"url": "https://p/dead/small.jpg"}], "description": "dead bird"},
                    {"photos": [{"url": "https://p/alive/small.jpg"}], "tags": []},
                ]},
            )

        async with mock_client(handler) as http:
            url = await INaturalistClient(http).fetch_gendered_photo(2, "female")

        assert url == "https://p/alive/large.jpg"
        assert seen["term_id"] == "9"
        assert seen["term_value_id"] == "10"

    @pytest.mark.asyncio
    async def test_timeout_degrades_to_none(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with mock_client(handler) as http:
            assert await INaturalistClient(http).fetch_juvenile_photo(2) is None


class TestWikimediaAndGbif:
    @pytest.mark.asyncio
    async def test_wikimedia_skips_svg(self):
        def handler(request):
            assert request.url.params["gsrsearch"] == "Turdus migratorius bird"
            assert request.url.params["gsrnamespace"] == "6"
            return httpx.Response(
                200,
                json={"query": {"pages": {
                    "10": {"index": 1, "imageinfo": [{"mime": "image/svg+xml", "url": "https://c/map.svg"}]},
                    "11": {"index": 2, "imageinfo": [{"mime": "image/jpeg", "url": "https://c/robin.jpg", "thumburl": "https://c/1024px-robin.jpg"}]},
                }}},
            )

        async with mock_client(handler) as http:
            assert await WikimediaClient(http).fetch_image("Turdus migratorius") == "https://c/1024px-robin.jpg"

    @pytest.mark.asyncio
    async def test_gbif_match(self):
        async with mock_client(lambda request: httpx.Response(200, json={"usageKey": 9510564})) as http:
            assert await GbifClient(http).match_taxon_key("Turdus migratorius") == 9510564

    @pytest.mark.asyncio
    async def test_gbif_no_match(self):
        async with mock_client(lambda request: httpx.Response(200, json={"matchType": "NONE"})) as http:
            assert await GbifClient(http).match_taxon_key("Nonexistent bird") is None

    def test_tile_url(self):
        assert build_tile_url(42) == (
            "https://api.gbif.org/v2/map/occurrence/density/{z}/{x}/{y}@1x.png?taxonKey=42&style=purpleYellow.poly"
        )
