import enum

class Role(str, enum.Enum):
    manager = "Manager"
    sales_agent = "SalesAgent"
    director = "Director"

class SaleType(str, enum.Enum):
    cash = "Cash"
    credit = "Credit"

class SourceType(str, enum.Enum):
    individual_dealer = "IndividualDealer"
    company = "Company"
    farm = "Farm"
