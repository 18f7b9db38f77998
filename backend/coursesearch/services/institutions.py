from __future__ import annotations

from dataclasses import dataclass

from coursesearch.enums import InstitutionType, SourceKind
from coursesearch.services.normalization import DEFAULT_SUFFIX_RULES, SuffixRules


@dataclass(frozen=True)
class InstitutionInfo:
    code: str
    name: str
    short_name: str
    type: InstitutionType
    source_kind: SourceKind = SourceKind.COURSE_LIST
    suffix_rules: SuffixRules = DEFAULT_SUFFIX_RULES

    @property
    def document_name(self) -> str:
        if self.source_kind is SourceKind.GRADE_STATISTICS:
            return f"{self.short_name.lower()}-grade-statistics.json"
        return f"{self.short_name.lower()}-all-courses.json"


def _inst(
    code: str,
    name: str,
    short_name: str,
    type_: InstitutionType,
    source_kind: SourceKind = SourceKind.COURSE_LIST,
) -> InstitutionInfo:
    return InstitutionInfo(code=code, name=name, short_name=short_name, type=type_, source_kind=source_kind)


U = InstitutionType.UNIVERSITY
S = InstitutionType.SPECIALIZED
P = InstitutionType.PRIVATE

# Registry order is the order of fan-out results and of round-robin interleaving.
ALL_INSTITUTIONS: tuple[InstitutionInfo, ...] = (
    _inst("1110", "Universitetet i Oslo", "UiO", U),
    _inst("1150", "Norges teknisk-naturvitenskapelige universitet", "NTNU", U),
    _inst("1120", "Universitetet i Bergen", "UiB", U),
    _inst("1175", "OsloMet – storbyuniversitetet", "OsloMet", U),
    _inst("1130", "Universitetet i Tromsø – Norges arktiske universitet", "UiT", U),
    _inst("1160", "Universitetet i Stavanger", "UiS", U),
    _inst("1171", "Universitetet i Agder", "UiA", U),
    _inst("1176", "Universitetet i Sørøst-Norge", "USN", U),
    _inst("1174", "Nord universitet", "Nord", U),
    _inst("1177", "Universitetet i Innlandet", "INN", U),
    _inst("1173", "Norges miljø- og biovitenskapelige universitet", "NMBU", U),
    _inst("1240", "Norges handelshøyskole", "NHH", S, SourceKind.GRADE_STATISTICS),
    _inst("1260", "Norges idrettshøgskole", "NIH", S),
    _inst("1210", "Norges musikkhøgskole", "NMH", S),
    _inst("1220", "Arkitektur- og designhøgskolen i Oslo", "AHO", S),
    _inst("6220", "Kunsthøgskolen i Oslo", "KHIO", S),
    _inst("0232", "Høgskolen i Molde, vitenskapelig høgskole i logistikk", "HIM", S),
    _inst("0236", "Høgskulen i Volda", "HVO", S),
    _inst("0217", "Samisk høgskole", "SH", S),
    _inst("0256", "Høgskolen i Østfold", "HiØ", S),
    _inst("0238", "Høgskulen på Vestlandet", "HVL", S),
    _inst("8241", "Handelshøyskolen BI", "BI", P),
    _inst("8208", "VID vitenskapelige høgskole", "VID", P),
    _inst("8221", "MF vitenskapelig høyskole", "MF", P),
    _inst("8232", "Ansgar høyskole", "AHS", P),
    _inst("8227", "Barratt Due Musikkinstitutt", "BD", P),
    _inst("8243", "Bergen Arkitekthøgskole", "BAS", P),
    _inst("8224", "Dronning Mauds Minne Høgskole", "DMMH", P),
    _inst("8234", "Fjellhaug Internasjonale Høgskole", "FIH", P),
    _inst("8247", "Høgskulen for grøn utvikling", "HGUt", P),
    _inst("8254", "Høyskolen for dansekunst", "HFDK", P),
    _inst("8248", "Høyskolen for ledelse og teologi", "HLT", P),
    _inst("8253", "Høyskolen Kristiania", "HK", P),
    _inst("8202", "Lovisenberg diakonale høgskole", "LDH", P),
    _inst("8223", "NLA Høgskolen", "NLA", P),
    _inst("8225", "Steinerhøyskolen", "Steiner", P),
)


class InstitutionRegistry:
    def __init__(self, institutions: tuple[InstitutionInfo, ...] | list[InstitutionInfo] = ALL_INSTITUTIONS):
        self._institutions = tuple(institutions)
        self._by_short_name = {inst.short_name: inst for inst in self._institutions}

    def __iter__(self):
        return iter(self._institutions)

    def __len__(self) -> int:
        return len(self._institutions)

    @property
    def short_names(self) -> list[str]:
        return [inst.short_name for inst in self._institutions]

    def get(self, short_name: str) -> InstitutionInfo | None:
        return self._by_short_name.get(short_name)

