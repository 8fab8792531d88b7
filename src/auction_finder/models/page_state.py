"""Typed view of the Next.js page state (`__NEXT_DATA__`) embedded in lot pages."""

from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

NumberLike = Optional[Union[int, float, str]]


class AddressRef(BaseModel):
    """Apollo cache reference, e.g. {"__ref": "Adresse:198825"}."""

    ref: Optional[str] = Field(default=None, validation_alias=AliasChoices("__ref", "_ref", "ref"))


class Photo(BaseModel):
    src: Optional[str] = None


class OrganizerData(BaseModel):
    nom: Optional[str] = None


class LotData(BaseModel):
    """Fields of a `Lot:<id>` Apollo record. Every field is optional on the wire."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    typename: Optional[str] = Field(default=None, validation_alias=AliasChoices("__typename", "typename"))
    id: Optional[str] = None
    nom: str = ""
    description: Optional[str] = None
    photo: Optional[str] = None
    photos: Optional[list[Photo]] = None

    offre_actuelle: NumberLike = None
    estimation_basse: NumberLike = None
    estimation_haute: NumberLike = None
    prix_plancher: NumberLike = None

    fermeture_reelle_date: NumberLike = None
    encheres_fermeture_date: NumberLike = None
    fermeture_date: NumberLike = None

    critere_consommation_energetique: Optional[str] = None
    critere_surface_habitable: NumberLike = None
    critere_nombre_de_pieces: NumberLike = None
    critere_occupation_du_bien: Optional[str] = None

    adresse: Optional[AddressRef] = None
    adresse_physique: Optional[AddressRef] = None
    organisateur: Optional[OrganizerData] = None

    def address_ref(self) -> Optional[str]:
        """Physical address reference first, then the generic one."""
        for candidate in (self.adresse_physique, self.adresse):
            if candidate is not None and candidate.ref:
                return candidate.ref
        return None


class AddressData(BaseModel):
    """Fields of an `Adresse:<id>` Apollo record."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    typename: Optional[str] = Field(default=None, validation_alias=AliasChoices("__typename", "typename"))
    id: Optional[str] = None
    text: str = ""
    ville: str = ""
    region: Optional[str] = None
    departement: Optional[str] = None
    department_slug: Optional[str] = None
    coords: Optional[list[float]] = None  # [longitude, latitude]


class PageQuery(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    lot_id: Optional[str] = None
    categorie: Optional[str] = None
    sous_categorie: Optional[str] = None


class ApolloState(BaseModel):
    data: dict[str, dict[str, Any]] = Field(default_factory=dict)


class PageProps(BaseModel):
    apollo_state: Optional[ApolloState] = Field(default=None, validation_alias=AliasChoices("apolloState", "apollo_state"))


class NextProps(BaseModel):
    page_props: Optional[PageProps] = Field(default=None, validation_alias=AliasChoices("pageProps", "page_props"))


class NextData(BaseModel):
    """Root of the `__NEXT_DATA__` JSON blob."""

    query: PageQuery = Field(default_factory=PageQuery)
    props: NextProps = Field(default_factory=NextProps)

    def records(self) -> dict[str, dict[str, Any]]:
        """Apollo cache entries keyed by "<Typename>:<id>"; empty when any level is missing."""
        page_props = self.props.page_props
        if page_props is None or page_props.apollo_state is None:
            return {}
        return page_props.apollo_state.data

    def lot(self, lot_id: str) -> Optional[LotData]:
        """The `Lot:<lot_id>` record, or None if absent, mistyped or malformed."""
        raw = self.records().get(f"Lot:{lot_id}")
        if not raw:
            return None
        try:
            lot = LotData.model_validate(raw)
        except ValidationError:
            return None
        if lot.typename not in (None, "Lot"):
            return None
        return lot

    def address(self, ref: Optional[str]) -> Optional[AddressData]:
        """The referenced `Adresse` record, or None."""
        if not ref:
            return None
        raw = self.records().get(ref)
        if not raw:
            return None
        try:
            address = AddressData.model_validate(raw)
        except ValidationError:
            return None
        if address.typename != "Adresse":
            return None
        return address
