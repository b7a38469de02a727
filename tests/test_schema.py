"""Unit tests for the catalog schema reader."""

import io
import xml.etree.ElementTree as ET

import pytest
from miniplayer.catalog_store import CatalogStore
from miniplayer.config import DEFAULT_SCHEMA_PATH
from miniplayer.errors import LoadError
from miniplayer.models import Song
from miniplayer.schema import load_schema


XSD_HEADER = (
    '<xs:schema id="lib" xmlns="" xmlns:xs="http://www.w3.org/2001/XMLSchema" '
    'xmlns:msdata="urn:schemas-microsoft-com:xml-msdata">'
)

SONG_TABLE_XSD = """
<xs:element name="song">
  <xs:complexType><xs:sequence>
    <xs:element name="id" msdata:AutoIncrement="true" msdata:AutoIncrementSeed="100"
                msdata:AutoIncrementStep="10" type="xs:long" />
    <xs:element name="title" type="xs:string" minOccurs="0" />
    <xs:element name="artist" type="xs:string" minOccurs="0" />
    <xs:element name="album" type="xs:string" minOccurs="0" />
    <xs:element name="genre" type="xs:string" minOccurs="0" />
    <xs:element name="length" type="xs:string" minOccurs="0" />
    <xs:element name="filename" type="xs:string" minOccurs="0" />
  </xs:sequence></xs:complexType>
</xs:element>
"""

LINK_TABLE_XSD = """
<xs:element name="playlist_song">
  <xs:complexType><xs:sequence>
    <xs:element name="playlist_id" type="xs:int" />
    <xs:element name="song_id" type="xs:int" />
  </xs:sequence></xs:complexType>
</xs:element>
"""


def make_xsd(tables, root="library"):
    return io.StringIO(
        XSD_HEADER
        + f'<xs:element name="{root}" msdata:IsDataSet="true"><xs:complexType>'
        + '<xs:choice minOccurs="0" maxOccurs="unbounded">'
        + "".join(tables)
        + "</xs:choice></xs:complexType></xs:element></xs:schema>"
    )


@pytest.fixture
def schema():
    return load_schema(DEFAULT_SCHEMA_PATH)


class TestLoadSchema:
    def test_bundled_schema(self, schema):
        assert schema.root == "music"
        assert list(schema.tables) == ["song", "playlist", "playlist_song"]

    def test_columns(self, schema):
        song = schema.tables["song"]
        assert song.column_names == ["id", "title", "artist", "album", "genre", "length", "filename"]
        assert song.column("id").is_integer
        assert song.column("id").required
        assert not song.column("title").required

    def test_primary_keys(self, schema):
        assert schema.tables["song"].primary_key == "id"
        assert schema.tables["playlist"].primary_key == "id"
        assert schema.tables["playlist_song"].primary_key is None

    def test_auto_increment(self):
        schema = load_schema(make_xsd([SONG_TABLE_XSD, LINK_TABLE_XSD]))
        id_col = schema.tables["song"].column("id")
        assert id_col.auto_increment
        assert id_col.auto_increment_seed == 100
        assert id_col.auto_increment_step == 10
        assert id_col.xsd_type == "long"

    def test_missing_song_table(self):
        with pytest.raises(LoadError, match="'song'"):
            load_schema(make_xsd([LINK_TABLE_XSD]))

    def test_missing_link_table(self):
        with pytest.raises(LoadError, match="'playlist_song'"):
            load_schema(make_xsd([SONG_TABLE_XSD]))

    def test_string_id_rejected(self):
        bad = SONG_TABLE_XSD.replace('type="xs:long"', 'type="xs:string"')
        with pytest.raises(LoadError, match="integer"):
            load_schema(make_xsd([bad, LINK_TABLE_XSD]))

    @pytest.mark.parametrize("seed", ["-1", "0"])
    def test_seed_below_one_rejected(self, seed):
        bad = SONG_TABLE_XSD.replace('AutoIncrementSeed="100"', f'AutoIncrementSeed="{seed}"')
        with pytest.raises(LoadError, match="AutoIncrementSeed"):
            load_schema(make_xsd([bad, LINK_TABLE_XSD]))

    def test_step_below_one_rejected(self):
        bad = SONG_TABLE_XSD.replace('AutoIncrementStep="10"', 'AutoIncrementStep="0"')
        with pytest.raises(LoadError, match="AutoIncrementStep"):
            load_schema(make_xsd([bad, LINK_TABLE_XSD]))

    def test_song_id_must_auto_increment(self):
        bad = SONG_TABLE_XSD.replace('msdata:AutoIncrement="true"', "")
        with pytest.raises(LoadError, match="AutoIncrement"):
            load_schema(make_xsd([bad, LINK_TABLE_XSD]))

    def test_song_keyed_on_other_column_rejected(self):
        xsd = make_xsd([SONG_TABLE_XSD, LINK_TABLE_XSD]).getvalue().replace(
            "</xs:complexType></xs:element></xs:schema>",
            '</xs:complexType><xs:unique name="K" msdata:PrimaryKey="true">'
            '<xs:selector xpath=".//song" /><xs:field xpath="title" /></xs:unique>'
            "</xs:element></xs:schema>",
        )
        with pytest.raises(LoadError, match="primary key"):
            load_schema(io.StringIO(xsd))

    def test_store_counts_from_seed_by_step(self):
        store = CatalogStore.open(make_xsd([SONG_TABLE_XSD, LINK_TABLE_XSD]), io.StringIO("<library />"))
        assert store.add_song(Song(title="first")) == 100
        assert store.add_song(Song(title="second")) == 110

    def test_not_a_schema(self):
        with pytest.raises(LoadError):
            load_schema(io.StringIO("<music />"))

    def test_malformed(self):
        with pytest.raises(LoadError):
            load_schema(io.StringIO("<xs:schema"))


class TestRows:
    def test_parse_row(self, schema):
        row = ET.fromstring("<song><id> 7 </id><title>Intro</title><filename /></song>")
        values = schema.parse_row("song", row)
        assert values["id"] == "7"
        assert values["title"] == "Intro"
        assert values["filename"] == ""
        assert values["artist"] is None

    def test_unknown_column(self, schema):
        row = ET.fromstring("<song><id>1</id><rating>5</rating></song>")
        with pytest.raises(LoadError, match="rating"):
            schema.parse_row("song", row)

    def test_missing_required_column(self, schema):
        row = ET.fromstring("<playlist_song><song_id>1</song_id></playlist_song>")
        with pytest.raises(LoadError, match="playlist_id"):
            schema.parse_row("playlist_song", row)

    def test_build_row_in_column_order(self, schema):
        row = schema.build_row("song", {"title": "Intro", "id": "7", "filename": None})
        assert [c.tag for c in row] == ["id", "title"]
        assert row.find("title").text == "Intro"

    def test_undeclared_table(self, schema):
        with pytest.raises(LoadError):
            schema.table("album")
