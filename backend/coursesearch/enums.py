from enum import Enum


class SourceKind(str, Enum):
    COURSE_LIST = "COURSE_LIST"
    GRADE_STATISTICS = "GRADE_STATISTICS"


class InstitutionType(str, Enum):
    UNIVERSITY = "UNIVERSITY"
    UNIVERSITY_COLLEGE = "UNIVERSITY_COLLEGE"
    SPECIALIZED = "SPECIALIZED"
    PRIVATE = "PRIVATE"
