import pytest

POSITIONS_CSV = """\
Account Number,Account Name,Symbol,Description,Quantity,Last Price,Current Value,Ex-Date,Amount Per Share,Pay Date,Dist. Yield,Est. Annual Income,Type
X12345678,Individual,AAPL,APPLE INC,10,$150.00,"$1,500.00",02/09/2024,$0.24,02/15/2024,0.64%,$9.60,Cash
X12345678,Individual,SPAXX**,HELD IN MONEY MARKET,500,$1.00,$500.00,,,,4.95%,$24.75,Cash
X12345678,Individual,Pending Activity,,,,$12.00,,,,,,
"""

HISTORY_CSV = """\
Brokerage

Run Date,Action,Symbol,Description,Type,Quantity,Price ($),Commission ($),Fees ($),Accrued Interest ($),Amount ($),Settlement Date
01/02/2024,YOU BOUGHT APPLE INC (AAPL) (Cash),AAPL,APPLE INC,Cash,10,100,,,,-1000,01/04/2024
02/01/2024,YOU BOUGHT APPLE INC (AAPL) (Cash),AAPL,APPLE INC,Cash,10,120,,,,-1200,02/05/2024
02/15/2024,DIVIDEND RECEIVED APPLE INC (AAPL) (Cash),AAPL,APPLE INC,Cash,,,,,,4.80,
03/01/2024,YOU SOLD APPLE INC (AAPL) (Cash),AAPL,APPLE INC,Cash,-5,150,0.65,0.02,,749.33,03/05/2024
03/04/2024,ELECTRONIC FUNDS TRANSFER RECEIVED (Cash),,No Description,Cash,,,,,,5000,
03/05/2024,MYSTERY ENTRY,AAPL,APPLE INC,Cash,,,,,,1,
"""


@pytest.fixture
def positions_csv() -> bytes:
    return POSITIONS_CSV.encode("utf-8")


@pytest.fixture
def history_csv() -> bytes:
    return HISTORY_CSV.encode("utf-8")
