"""Per-form-type prompts for Army accountability form extraction.

Each prompt states the form identity, lists every field with its expected
shape, gives the domain heuristics the model needs (NSN layout, LIN codes,
size abbreviations) and ends with strict JSON-only output rules.
"""

from form_brain.models import FormType

_JSON_SUFFIX = """

CRITICAL OUTPUT RULES:
- Return ONLY a single valid JSON object. No other text before or after.
- Do NOT include any explanation or preamble.
- If a text field is not readable or not present, use an empty string "".
- If a quantity or amount is not readable or not present, use 0."""

CLASSIFY_PROMPT = """Analyze this Army form image and identify which specific form type it is.

Look for these distinctive features:

1. DA FORM 2062 - HAND RECEIPT:
- Contains "HAND RECEIPT/ANNEX NUMBER" at the top
- Has quantity grid columns labeled "a", "b", "c", "d", "e", "f"
- Contains "STOCK NUMBER" and "ITEM DESCRIPTION" columns
- Has "FROM:" and "TO:" fields for units/personnel
- Publication line shows "DA FORM 2062"

2. DA FORM 3161 - REQUEST FOR ISSUE OR TURN-IN:
- Contains "REQUEST FOR ISSUE OR TURN-IN" at the top
- Has checkboxes for [ ] ISSUE | [ ] TURN-IN
- Contains fields "REQUEST NO.", "VOUCHER NO.", "DODAAC" and "PRIORITY"
- Contains "SEND TO:" and "REQUEST FROM:" fields
- Line items with "ITEM NO.", "STOCK NO.", "QUANTITY"

3. OCIE RECORD (DA FORM 3645 or similar):
- Soldier information: "NAME:", "RANK/GRADE:", "SSN/PID:"
- Has "UNIT:" and "CIF CODE:" fields
- Columns "LIN", "SIZE", "NOMENCLATURE", "PARTIAL NSN", "OH QTY"
- Has "PCS TRANS" and "ETS TRANS" columns
- Contains a liability statement and signature line

4. GENERIC:
- None of the above Army form features
- May be a simple receipt, invoice or handwritten note

Respond with ONLY one of these exact values and nothing else:
DA2062
DA3161
OCIE
GENERIC"""

PROMPTS: dict[FormType, str] = {
    FormType.HAND_RECEIPT: """You are analyzing a DA Form 2062 - Hand Receipt for the U.S. Army National Guard.
Extract ALL information from this form and return it as a JSON object.
Use EXACTLY these keys:

{
  "handReceiptNumber": "hand receipt/annex number if visible",
  "from": "unit or organization issuing the equipment",
  "to": "name of the person receiving the equipment, with rank (e.g. SGT Smith)",
  "publicationDate": "date from the form in MM/DD/YYYY format",
  "items": [
    {
      "stockNumber": "NSN or stock number (e.g. 1005-01-231-0001)",
      "itemDescription": "complete item description including model numbers",
      "model": "model number if separate from the description",
      "securityCode": "security classification code (U, S, etc.)",
      "unitOfIssue": "unit of issue (EA, SE, KIT, etc.)",
      "quantityAuth": 0,
      "quantities": {"A": 0, "B": 0, "C": 0, "D": 0, "E": 0, "F": 0}
    }
  ],
  "page": "current page number",
  "totalPages": "total number of pages"
}

Important:
- Extract ALL line items visible in the grid, even if some columns are blank
- Quantities A-F are the numbers in grid columns a-f; use 0 where a cell is empty
- NSNs follow the format NNNN-NN-NNN-NNNN (first 4 digits = Federal Supply Class, next 2 = country code)
- Include ranks and full names in the "to" field""" + _JSON_SUFFIX,

    FormType.REQUEST_TURN_IN: """You are analyzing a DA Form 3161 - Request for Issue or Turn-In for the U.S. Army National Guard.
Extract ALL information from this form and return it as a JSON object.
Use EXACTLY these keys:

{
  "requestNumber": "request number",
  "voucherNumber": "voucher number if assigned",
  "sendTo": "supply support activity receiving the request",
  "dateRequired": "date material required in MM/DD/YYYY format",
  "dodAAC": "Department of Defense Activity Address Code",
  "priority": "priority designator code",
  "requestFrom": "unit making the request",
  "transactionType": "ISSUE or TURN-IN, whichever checkbox is marked",
  "items": [
    {
      "itemNumber": 1,
      "stockNumber": "NSN or stock number",
      "itemDescription": "complete item description",
      "unitOfIssue": "unit of issue (EA, BX, KIT, etc.)",
      "quantity": 0,
      "code": "reason code (I, R, etc.)",
      "supplyAction": "supply action taken",
      "unitPrice": 0.00,
      "totalCost": 0.00
    }
  ],
  "signature": "signature if visible",
  "date": "date of signature in MM/DD/YYYY format"
}

Important:
- Check the checkboxes at the top to determine the transaction type
- Extract ALL line items, even if some columns are empty
- Financial fields are plain numbers without currency symbols
- NSNs follow the format NNNN-NN-NNN-NNNN""" + _JSON_SUFFIX,

    FormType.EQUIPMENT_RECORD: """You are analyzing an OCIE (Organizational Clothing and Individual Equipment) Record, DA Form 3645.
Extract ALL information using ZONE-BASED PARSING.

ZONE 1: HEADER - NAME (LAST, FIRST MIDDLE), RANK/GRADE (SGT/E-5), SSN/PID (last 4 or PID),
DOD ID, UNIT, CIF CODE (alphanumeric, e.g. G3MS00), REPORT DATE.

ZONE 2: TABLE GRID - find the header row containing "ISSUING CIF", "LIN", "SIZE", "NOMENCLATURE",
"EDITION", "FIG", "W/PC", "PARTIAL NSN", "AUTH QTY", "OH QTY", "DUE OUT", "PCS", "ETS".

ZONE 3: LINE ITEMS - for each row below the header extract every column.

Return a JSON object with EXACTLY this structure:

{
  "header": {
    "soldierName": "LAST, FIRST MIDDLE",
    "rankGrade": "rank and grade",
    "dodId": "full DOD ID if visible",
    "ssnPid": "SSN last 4 or PID",
    "unit": "complete unit designation",
    "cifCode": "central issue facility code",
    "reportDate": "MM/DD/YYYY"
  },
  "items": [
    {
      "issuingCif": "column 1: issuing CIF code",
      "lin": "column 2: line item number (e.g. B05008)",
      "size": "column 3: size (LRG OCP TAN, 7 1/8, etc.)",
      "nomenclature": "column 4: complete item description",
      "edition": "column 5: edition",
      "fig": "column 6: figure number",
      "withPc": "column 7: W/PC",
      "partialNsn": "column 8: first 4 digits of the NSN",
      "nsn": "complete NSN if visible (NNNN-NN-NNN-NNNN)",
      "quantities": {"authorized": 0, "onHand": 0, "dueOut": 0},
      "flags": {"pcsTrans": false, "etsTrans": false}
    }
  ],
  "footer": {
    "totalValue": 0.00,
    "isSigned": false,
    "signatureText": "signature line text if visible",
    "statementDate": "MM/DD/YYYY from the liability statement"
  }
}

Parsing rules:
1. Multi-line descriptions: if "ISSUING CIF" is empty, the text belongs to the NOMENCLATURE of the previous row
2. Ignore page numbers ("PAGE 1 OF 4") and sensitivity banners
3. PARTIAL NSN is exactly 4 digits; a full NSN is NNNN-NN-NNN-NNNN
4. Sizes use military abbreviations (LRG, MED, SML, REG, XL) or numeric sizes (7 1/8, 10R)
5. OH QTY should not exceed AUTH QTY; report what is printed, do not correct it
6. LIN codes are short alphanumeric codes, usually 6 characters""" + _JSON_SUFFIX,

    FormType.GENERIC: """You are analyzing a U.S. Army National Guard hand receipt or equipment document.
Extract the equipment transaction details and return them as a JSON object.
Use EXACTLY these keys:

{
  "itemName": "complete equipment description including model numbers",
  "borrowerName": "full name of the borrower including rank if visible",
  "date": "transaction date in MM/DD/YYYY format",
  "serialNumber": "serial number, NSN or other unique identifier",
  "category": "one of: Weapons, Optics, Radios/Comms, PPE, Tools, Vehicles, Medical, Other",
  "condition": "equipment condition (Serviceable, Damaged, Missing parts, etc.)",
  "notes": "form titles, column headings, quantities and any other visible text"
}

Important:
- Look for military equipment: M4/M16 rifles, M249, M240, radios, night vision, body armor, vehicles
- Identify ranks and names: SGT, PFC, CPL, SSG, etc.
- NSNs are typically 13 digits formatted like 1005-01-231-0001
- Put any form titles and column headings you can read into the notes field""" + _JSON_SUFFIX,
}
