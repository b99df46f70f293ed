"""Enumerated vocabularies for the patient intake record.

Every categorical field of the Patient aggregate, Visit and Appointment
records is backed by one of these enums. Values are the literal strings
persisted in storage and shown by the intake wizard, so renaming a value
is a data migration, not a refactor.

Security Impact:
    - Enum-typed fields reject arbitrary strings at the schema boundary
    - Invalid values are never coerced to a default
"""

from enum import Enum


class SectionState(str, Enum):
    """Lifecycle state of an independently written patient section."""
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


# ============================================================================
# Demographics
# ============================================================================

class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class BloodGroup(str, Enum):
    """ABO/Rh blood group as displayed on the intake form."""
    A_POSITIVE = "A Positive (A⁺)"
    A_NEGATIVE = "A Negative (A⁻)"
    B_POSITIVE = "B Positive (B⁺)"
    B_NEGATIVE = "B Negative (B⁻)"
    AB_POSITIVE = "AB Positive (AB⁺)"
    AB_NEGATIVE = "AB Negative (AB⁻)"
    O_POSITIVE = "O Positive (O⁺)"
    O_NEGATIVE = "O Negative (O⁻)"
    NONE = "None"


# Shorthand sent by the wizard's blood group picker
BLOOD_GROUP_ALIASES = {
    "A+": BloodGroup.A_POSITIVE,
    "A-": BloodGroup.A_NEGATIVE,
    "B+": BloodGroup.B_POSITIVE,
    "B-": BloodGroup.B_NEGATIVE,
    "AB+": BloodGroup.AB_POSITIVE,
    "AB-": BloodGroup.AB_NEGATIVE,
    "O+": BloodGroup.O_POSITIVE,
    "O-": BloodGroup.O_NEGATIVE,
}


class Occupation(str, Enum):
    UNEMPLOYED = "Unemployed"
    EMPLOYED = "Employed"
    STUDENT = "Student"
    BUSINESS = "Business"
    SERVICES = "Services"
    RETIRED = "Retired"
    GOVERNMENT = "Government /civil service"
    OTHER = "Other"


class ContactMethod(str, Enum):
    PHONE_CALL = "Phone Call"
    MESSAGES = "Messages"
    EMAIL = "Email"


class PlanType(str, Enum):
    HMO = "Health Maintenance Organization (HMO)"
    PPO = "Preferred Provider Organization (PPO)"
    POS = "Point of Service (POS)"
    EPO = "Exclusive Provider Organization (EPO)"
    MEDICARE = "Medicare"
    MEDICAID = "Medicaid"
    PRIVATE = "Private Insurance"
    OTHER = "Other"


# ============================================================================
# Allergies
# ============================================================================

class Allergen(str, Enum):
    PENICILLIN = "Penicillin"
    SULFA_DRUGS = "Sulfa Drugs"
    ASPIRIN = "Aspirin"
    SHELLFISH = "Shellfish"
    NUTS = "Nuts (e.g., peanuts, almonds, cashews)"
    EGGS = "Eggs"
    MILK = "Milk"
    WHEAT = "Wheat"
    SOY = "Soy"
    POLLEN = "Pollen (specific types, e.g., ragweed, grass)"
    DUST_MITES = "Dust Mites"
    LATEX = "Latex"
    NICKEL = "Nickel"
    PET_DANDER = "Pet Dander"
    BEE_VENOM = "Bee Venom"
    MOULD = "Mould"
    CERTAIN_MEDICATIONS = "Certain Medications"
    OTHER = "Other"


class AllergyReaction(str, Enum):
    RASH = "Rash"
    ITCHING = "Itching"
    HIVES = "Hives"
    SWELLING = "Swelling"
    DIFFICULTY_BREATHING = "Difficulty Breathing"
    ANAPHYLAXIS = "Anaphylaxis"
    NAUSEA = "Nausea"
    VOMITING = "Vomiting"
    DIARRHOEA = "Diarrhoea"
    DIZZINESS = "Dizziness"
    FAINTING = "Fainting"
    SNEEZING = "Sneezing"
    OTHER = "Other"


class AllergySeverity(str, Enum):
    MILD = "Mild"
    MODERATE = "Moderate"
    SEVERE = "Severe"
    CRITICAL = "Critical"
    UNKNOWN = "Unknown"
    NONE = "None"


class AllergyCategory(str, Enum):
    MEDICATIONS = "Medications"
    FOODS = "Foods"
    ENVIRONMENTAL = "Environmental"
    INSECTS = "Insects"
    LATEX = "Latex"
    OTHER = "Other"


class AllergyCode(str, Enum):
    A100 = "A100"
    A200 = "A200"
    A300 = "A300"
    A400 = "A400"
    A500 = "A500"
    A600 = "A600"


class AllergyStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    RESOLVED = "Resolved"
    CHRONIC = "Chronic"
    ACUTE = "Acute"
    RECURRENT = "Recurrent"
    UNKNOWN = "Unknown"
    NONE = "None"


# ============================================================================
# Family history
# ============================================================================

class FamilyRelationship(str, Enum):
    FATHER = "Father"
    MOTHER = "Mother"
    BROTHER = "Brother"
    SISTER = "Sister"
    SON = "Son"
    DAUGHTER = "Daughter"
    GRANDFATHER = "Grandfather"
    GRANDMOTHER = "Grandmother"
    UNCLE = "Uncle"
    AUNT = "Aunt"
    COUSIN = "Cousin"
    NEPHEW = "Nephew"
    NIECE = "Niece"
    SPOUSE = "Spouse"
    OTHER = "Other"


class GeneticTestResult(str, Enum):
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    PENDING = "Pending"
    UNKNOWN = "Unknown"
    NOT_TESTED = "Not Tested"


# ============================================================================
# Social history
# ============================================================================

class SmokingStatus(str, Enum):
    CURRENT = "Current Smoker"
    FORMER = "Former Smoker"
    NEVER = "Never Smoked"


class TobaccoUseStatus(str, Enum):
    NEVER = "Never used"
    CURRENT = "Current user"
    FORMER = "Former user"
    SOCIAL = "Social user"


class TobaccoDurationUnit(str, Enum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"


class AlcoholStatus(str, Enum):
    NON_DRINKER = "Non-Drinker"
    MODERATE = "Moderate Drinker"
    HEAVY = "Heavy Drinker"


class AlcoholType(str, Enum):
    BEER = "Beer"
    WINE = "Wine"
    RED_WINE = "Red wine"
    WHISKEY = "Wiskey"
    VODKA = "Vodka"
    RUM = "Rum"
    GIN = "Gin"
    TEQUILA = "Tequila"
    BRANDY = "Brandy"
    MIXED_DRINKS = "Mixed Drinks"
    OTHER = "Other"


class IncomeLevel(str, Enum):
    HIGH = "High"
    MODERATE = "Moderate"
    LOW = "Low"


class EmploymentStatus(str, Enum):
    FULL_TIME = "Employed Full-time"
    PART_TIME = "Employed Part-time"
    EMPLOYED = "Employed"
    UNEMPLOYED = "Unemployed"
    SELF_EMPLOYED = "Self-employed"
    STUDENT = "Student"
    RETIRED = "Retired"
    HOMEMAKER = "Homemaker"
    DISABLED = "Disabled"
    OTHER = "Other"


class FinancialSupport(str, Enum):
    NONE = "None"
    FAMILY = "Family"
    GOVERNMENT = "Government"
    DISABILITY_BENEFITS = "Disability Benefits"
    RETIREMENT_BENEFITS = "Retirement Benefits"
    CHILD_SUPPORT = "Child Support"
    ALIMONY = "Alimony"
    OTHER = "Other"


class EducationLevel(str, Enum):
    UNEDUCATED = "Uneducated"
    BELOW_10TH = "Below 10th"
    PASSED_10TH = "10th Passed"
    PASSED_12TH = "12th Passed"
    BMS = "BMS"
    HIGH_SCHOOL = "High School"
    DIPLOMA = "Diploma"
    BACHELORS = "Bachelor's"
    MASTERS = "Master's"
    PHD = "PhD"
    OTHER = "Other"


class ActivityDurationUnit(str, Enum):
    MINUTES = "min"
    SECONDS = "seconds"
    HOURS = "hr"


class ActivityConsistency(str, Enum):
    REGULAR = "Regular"
    OCCASIONAL = "Occasional"
    IRREGULAR = "Irregular"
    NEVER = "Never"


class StressLevel(str, Enum):
    NONE = "None"
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    VERY_HIGH = "Very High"


class IsolationStatus(str, Enum):
    NOT_ISOLATED = "Not Isolated"
    SELF_ISOLATING = "Self-Isolating"
    QUARANTINED = "Quarantined"
    SOCIALLY_ISOLATED = "Socially Isolated"
    OTHER = "Other"
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"


class SocialSupport(str, Enum):
    STRONG = "Strong"
    MODERATE = "Moderate"
    LIMITED = "Limited"
    NONE = "None"
    UNKNOWN = "Unknown"
    SUPPORTIVE_FAMILY = "Supportive family"
    FRIENDS = "Friends"
    COMMUNITY_GROUPS = "Community groups"
    MINIMAL = "Minimal Support"
    OTHER = "Other"


class ViolenceType(str, Enum):
    PHYSICAL = "Physical"
    SEXUAL = "Sexual violence"
    EMOTIONAL = "Emotional abuse"
    FINANCIAL = "Financial"
    DOMESTIC = "Domestic violence"
    CHILD_ABUSE = "Child Abuse"
    ELDER_ABUSE = "Elder Abuse"
    BULLYING = "Bullying"
    WORKPLACE = "Workplace violence"
    COMMUNITY = "Community violence"
    OTHER = "Other"


class GenderIdentity(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    NON_BINARY = "Non-binary"
    TRANSGENDER = "Transgender"
    OTHER = "Other"
    UNDISCLOSED = "Prefer not to say"


class SexualOrientation(str, Enum):
    STRAIGHT = "Straight"
    HETEROSEXUAL = "Heterosexual"
    HOMOSEXUAL = "Homosexual"
    BISEXUAL = "Bisexual"
    PANSEXUAL = "Pansexual"
    ASEXUAL = "Asexual"
    QUEER = "Queer"
    QUESTIONING = "Questioning"
    OTHER = "Other"
    UNDISCLOSED = "Prefer not to say"


class SupplementUsage(str, Enum):
    YES = "Yes"
    OCCASIONALLY = "Occasionally"
    NO = "No"


# ============================================================================
# Visits and appointments
# ============================================================================

class VisitType(str, Enum):
    REGULAR_CHECKUP = "Regular Checkup"
    EMERGENCY = "Emergency Visit"
    FOLLOW_UP = "Follow-up"
    CONSULTATION = "Consultation"
    PHYSICAL_EXAM = "Physical Exam"
    VACCINATION = "Vaccination"
    LAB_RESULTS_REVIEW = "Lab Results Review"
    URGENT_CARE = "Urgent Care"
    SPECIALIST_REFERRAL = "Specialist Referral"
    OTHER = "Other"


class DoseTime(str, Enum):
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"
    NIGHT = "Night"
    BEFORE_MEALS = "Before Meals"
    AFTER_MEALS = "After Meals"
    WITH_MEALS = "With Meals"


class DoseFrequency(str, Enum):
    OD = "Once daily (OD)"
    BD = "Twice daily (BD)"
    TDS = "Thrice daily (TDS)"
    QID = "Four times daily (QID)"
    PRN = "As needed (PRN)"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


class DoseDuration(str, Enum):
    ONE_WEEK = "1 week"
    TWO_WEEKS = "2 weeks"
    ONE_MONTH = "1 month"
    THREE_MONTHS = "3 months"
    SIX_MONTHS = "6 months"
    ONE_YEAR = "1 year"
    ONGOING = "Ongoing"


class MedicationStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class AppointmentType(str, Enum):
    FOLLOW_UP = "Follow-up"
    NEW_PATIENT = "New patient"
    ROUTINE_CHECKUP = "Routine Check-up"
    CONSULTATION = "Consultation"
    EMERGENCY = "Emergency"
    SPECIALIST_CONSULTATION = "Specialist Consultation"
    PROCEDURE = "Procedure or Treatment"
    VACCINATION = "Vaccination"
    COUNSELLING = "Counselling or Therapy"
    EMERGENCY_VISIT = "Emergency Visit"
    TELEMEDICINE = "Telemedicine Appointment"
    OTHER = "Other"


class AppointmentReason(str, Enum):
    REGULAR = "Regular"
    GENERAL_CHECKUP = "General Health Check-up"
    FOLLOW_UP_VISIT = "Follow-up Visit"
    SPECIALIST_CONSULTATION = "Specialist Consultation"
    VACCINATION = "Vaccination"
    SCREENING_TEST = "Screening Test"
    SYMPTOMS_EVALUATION = "Symptoms Evaluation"
    EMERGENCY = "Emergency"
    ROUTINE_CHECK = "Routine check"
    URGENT = "Urgent"
    ROUTINE_PROCEDURE = "Routine Procedure (e.g., blood test, X-ray)"
    COUNSELING = "Counseling or Therapy"
    PRESCRIPTION_REFILL = "Prescription Refill"
    HEALTH_EDUCATION = "Health Education"
    OTHER = "Other"


class Urgency(str, Enum):
    NO = "No"
    YES = "Yes"
