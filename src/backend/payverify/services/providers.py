"""
Provider catalogue.

One immutable ProviderProfile per supported provider: where its receipt
lives, how it is retrieved, what a reference looks like, what the receipt's
labels are, and which canonical fields must be present for a verification to
count. Adding or removing a provider is an edit to PROVIDERS only.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from payverify.models.verification import Provider
from payverify.services.parser import (
    ACCOUNT,
    ISO_DATE,
    MONEY,
    NUMERIC_DATE,
    REFERENCE,
    TEXT,
    FieldRule,
    Transform,
    label,
    until,
)


class Transport(str, Enum):
    """How a provider exposes its receipt."""
    DIRECT_DOCUMENT = "direct-document"    # HTTPS GET returns the PDF
    PAGE_TEXT = "page-text"                # server-rendered HTML page
    BROWSER_RESPONSE = "browser-response"  # page script fetches a PDF; watch traffic
    BROWSER_DOWNLOAD = "browser-download"  # page script builds a PDF on a button click


@dataclass(frozen=True)
class InputContract:
    """Minimum input a provider needs before any acquisition is attempted."""
    requires_suffix: bool = False
    accepts_file: bool = True

    def describe(self) -> str:
        base = "reference or file" if self.accepts_file else "reference"
        return f"{base} + accountSuffix" if self.requires_suffix else base


@dataclass(frozen=True)
class ProviderProfile:
    provider: Provider
    display_name: str
    receipt_url: str
    transport: Transport
    contract: InputContract
    reference_patterns: Tuple[str, ...]
    mandatory_fields: Tuple[str, ...]
    rules: Tuple[FieldRule, ...]
    date_formats: Tuple[str, ...]
    ocr_languages: str = "eng"
    verify_tls: bool = True
    download_control: Optional[str] = None
    compiled_references: Tuple[re.Pattern, ...] = field(default=(), init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(
            self,
            'compiled_references',
            tuple(re.compile(p) for p in self.reference_patterns),
        )

    def build_url(self, reference: str, account_suffix: Optional[str] = None) -> str:
        return self.receipt_url.format(
            reference=reference.strip(),
            suffix=(account_suffix or "").strip(),
        )


CBE_RULES = (
    FieldRule('payer', label('Payer') + TEXT + until('Account'), Transform.TITLE,
              example='Payer ABEBE KEBEDE Account 1****1234'),
    FieldRule('payer_account', label('Payer') + r'.+?\s*Account\s*:?\s*' + r'([\w*]+)', Transform.ACCOUNT),
    FieldRule('receiver', label('Receiver') + TEXT + until('Account'), Transform.TITLE),
    FieldRule('receiver_account', label('Receiver') + r'.+?\s*Account\s*:?\s*' + r'([\w*]+)', Transform.ACCOUNT),
    FieldRule('date', label(r'Payment Date & Time') + NUMERIC_DATE, Transform.DATE,
              example='Payment Date & Time 2/5/2026, 3:45:12 PM'),
    FieldRule('reference', label(r'Reference No\.? \(VAT Invoice No\)') + REFERENCE,
              example='Reference No. (VAT Invoice No) FT26036ABCDE'),
    FieldRule('reason', label(r'Reason / Type of service') + TEXT + until('Transferred Amount')),
    FieldRule('amount', label('Transferred Amount') + MONEY, Transform.MONEY,
              example='Transferred Amount 1,500.00 ETB'),
    FieldRule('service_charge', label('Commission or Service Charge') + MONEY, Transform.MONEY),
    FieldRule('vat', label(r'15% VAT on Commission') + MONEY, Transform.MONEY),
    FieldRule('total_amount', label('Total amount debited from customers account') + MONEY, Transform.MONEY),
)

TELEBIRR_RULES = (
    FieldRule('payer', label('የከፋይ ስም', 'Payer Name') + TEXT
              + until(r'የከፋይ ቴሌብር ቁ\.', r'Payer telebirr no\.?'), Transform.TITLE,
              example='የከፋይ ስም/Payer Name ABEBE KEBEDE የከፋይ ቴሌብር ቁ./Payer telebirr no. 2519****5678'),
    FieldRule('payer_account', label(r'የከፋይ ቴሌብር ቁ\.', r'Payer telebirr no\.?') + r'(\+?[0-9*]{6,})',
              Transform.ACCOUNT),
    FieldRule('receiver', label('የገንዘብ ተቀባይ ስም', 'Credited Party name') + TEXT
              + until(r'የገንዘብ ተቀባይ ቴሌብር ቁ\.', 'Credited party account no'), Transform.TITLE),
    FieldRule('receiver_account', label(r'የገንዘብ ተቀባይ ቴሌብር ቁ\.', r'Credited party account no\.?')
              + r'([0-9*]{4,})', Transform.ACCOUNT),
    FieldRule('reference', label('የክፍያ ቁጥር', r'Invoice No\.?') + REFERENCE,
              example='የክፍያ ቁጥር/Invoice No. CHQ0FJ403O'),
    FieldRule('date', label('የክፍያ ቀን', 'Payment date') + NUMERIC_DATE, Transform.DATE),
    FieldRule('amount', label('የተከፈለው መጠን', 'Settled Amount') + MONEY, Transform.MONEY),
    FieldRule('service_charge', label('የአገልግሎት ክፍያ', 'Service fee') + MONEY, Transform.MONEY),
    FieldRule('vat', label(r'የአገልግሎት ክፍያ ተ\.እ\.ታ', 'Service fee VAT') + MONEY, Transform.MONEY),
    FieldRule('total_amount', label('ጠቅላላ የተከፈለ', 'Total Paid Amount') + MONEY, Transform.MONEY),
)

DASHEN_RULES = (
    FieldRule('payer', label('Sender Name') + TEXT + until('Sender Account', 'Account'), Transform.TITLE),
    FieldRule('payer_account', label('Sender Account Number', 'Sender Account') + ACCOUNT, Transform.ACCOUNT),
    FieldRule('reason', label('Narrative') + TEXT + until('Receiver Name', 'Phone No', 'Phone Number')),
    FieldRule('receiver', label('Receiver Name') + TEXT
              + until(r'Phone No\.?', 'Phone Number', 'Institution Name', 'Receiver Account'), Transform.TITLE),
    FieldRule('receiver_account', label('Receiver Account Number', 'Receiver Account') + ACCOUNT, Transform.ACCOUNT),
    FieldRule('receiver_account', label(r'Phone No\.?', 'Phone Number') + r'(\+?\d[\d\-]{6,})', Transform.ACCOUNT),
    FieldRule('reference', label('Transaction Reference') + REFERENCE,
              example='Transaction Reference: 091DSTR2502100ABC'),
    FieldRule('date', label('Transaction Date & Time', 'Transaction Date') + NUMERIC_DATE, Transform.DATE),
    FieldRule('amount', label('Transaction Amount') + MONEY, Transform.MONEY,
              example='Transaction Amount ETB 2,500.00'),
    FieldRule('service_charge', label('Service Charge') + MONEY, Transform.MONEY),
    FieldRule('vat', label(r'VAT \(15%\)', 'VAT') + MONEY, Transform.MONEY),
    FieldRule('total_amount', label('Total') + MONEY, Transform.MONEY),
)

ABYSSINIA_RULES = (
    FieldRule('payer', label(r"Sender'?s? Name", 'Source Account Name') + TEXT
              + until(r"Sender'?s? Account", 'Source Account', r"Receiver'?s? Name"), Transform.TITLE),
    FieldRule('payer_account', label(r"Sender'?s? Account", 'Source Account') + ACCOUNT, Transform.ACCOUNT),
    FieldRule('receiver', label(r"Receiver'?s? Name") + TEXT + until(r"Receiver'?s? Account"), Transform.TITLE,
              example="Receiver's Name ALMAZ TADESSE Receiver's Account 9876****4321"),
    FieldRule('receiver_account', label(r"Receiver'?s? Account") + ACCOUNT, Transform.ACCOUNT),
    FieldRule('amount', label('Transferred amount') + MONEY, Transform.MONEY),
    FieldRule('reference', label('Transaction Reference') + REFERENCE),
    FieldRule('date', label('Transaction Date') + NUMERIC_DATE, Transform.DATE,
              example='Transaction Date 01/02/24 10:30'),
    FieldRule('reason', label('Narrative', 'Remark') + TEXT + until('Transaction', end=True)),
    FieldRule('service_charge', label('Service Charge') + MONEY, Transform.MONEY),
    FieldRule('vat', label('VAT') + MONEY, Transform.MONEY),
)

MPESA_RULES = (
    FieldRule('payer', label('የላኪ ስም', 'SENDER NAME') + TEXT
              + until('የላኪ ስልክ ቁጥር', 'SENDER PHONE NUMBER'), Transform.TITLE),
    FieldRule('payer_account', label('የላኪ ስልክ ቁጥር', 'SENDER PHONE NUMBER') + r'(\+?251\d{9}|0\d{9})',
              Transform.ACCOUNT),
    FieldRule('receiver', label('የተቀባዩ ስም', 'RECEIVER NAME') + TEXT
              + until('የተቀባዩ ባንክ ስም', 'RECEIVER BANK NAME', 'የባንክ አካውንት ቁጥር', 'BANK ACCOUNT NUMBER'),
              Transform.TITLE),
    FieldRule('receiver', label('የተቀባዩ ባንክ ስም', 'RECEIVER BANK NAME') + TEXT
              + until('የባንክ አካውንት ቁጥር', 'BANK ACCOUNT NUMBER'), Transform.TITLE),
    FieldRule('receiver_account', label('የባንክ አካውንት ቁጥር', 'BANK ACCOUNT NUMBER') + r'([0-9*]{6,})',
              Transform.ACCOUNT),
    FieldRule('reference', label('የግብይት ቁጥር', 'TRANSACTION ID', 'TRANSACTION NUMBER')
              + r'((?-i:UBH[A-Z0-9]{6,}))',
              example='የግብይት ቁጥር/TRANSACTION ID UBH4X7K2M9'),
    FieldRule('receipt_number', label('ደረሰኝ ቁጥር', r'RECEIPT NO\.?') + r'((?-i:[A-Z0-9]{4,}))'),
    FieldRule('date', label('የክፍያ ቀን', 'PAYMENT DATE') + ISO_DATE, Transform.DATE),
    FieldRule('amount', label('የገንዘብ መጠን', 'SETTLED AMOUNT') + MONEY, Transform.MONEY),
    FieldRule('service_charge', label('የአገልግሎት ክፍያ', 'SERVICE FEE') + MONEY, Transform.MONEY),
    FieldRule('vat', label('ተጨማሪ እሴት ታክስ', r'\+ 15% VAT', '15% VAT') + MONEY, Transform.MONEY),
    FieldRule('total_amount', label('ጠቅላላ', 'TOTAL') + MONEY, Transform.MONEY),
)

AWASH_RULES = (
    FieldRule('payer', label('Sender Name') + TEXT + until('Sender Account', 'Account', 'Receiver Name'),
              Transform.TITLE),
    FieldRule('payer_account', label('Sender Account Number', 'Sender Account') + ACCOUNT, Transform.ACCOUNT),
    FieldRule('receiver', label('Receiver Name') + TEXT + until('Receiver Account', 'Account', 'Amount', 'Transaction'),
              Transform.TITLE),
    FieldRule('receiver_account', label('Receiver Account Number', 'Receiver Account') + ACCOUNT, Transform.ACCOUNT),
    FieldRule('reference', label('Transaction Reference') + REFERENCE),
    FieldRule('date', label('Transaction Date') + NUMERIC_DATE, Transform.DATE),
    FieldRule('amount', label('Transaction Amount') + MONEY, Transform.MONEY),
    FieldRule('service_charge', label('Service Charge') + MONEY, Transform.MONEY),
    FieldRule('vat', label('VAT') + MONEY, Transform.MONEY),
    FieldRule('total_amount', label('Total') + MONEY, Transform.MONEY),
)

DAY_FIRST_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y %I:%M:%S %p",
    "%d/%m/%Y %I:%M %p",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%Y %H:%M",
    "%Y-%m-%d %H:%M:%S",
)

PROVIDERS: Mapping[Provider, ProviderProfile] = MappingProxyType({
    Provider.CBE: ProviderProfile(
        provider=Provider.CBE,
        display_name="Commercial Bank of Ethiopia",
        receipt_url="https://apps.cbe.com.et:100/?id={reference}{suffix}",
        transport=Transport.BROWSER_RESPONSE,
        contract=InputContract(requires_suffix=True, accepts_file=True),
        reference_patterns=(
            r'Reference\s*No\.?\s*\(VAT\s*Invoice\s*No\)\s*:?\s*([A-Z0-9]{6,})',
            r'\b(FT[A-Z0-9]{10})\b',
        ),
        mandatory_fields=('payer', 'receiver', 'reference', 'amount', 'date'),
        rules=CBE_RULES,
        date_formats=(
            "%m/%d/%Y %I:%M:%S %p",
            "%m/%d/%Y %I:%M %p",
            "%d/%m/%Y %H:%M:%S",
        ),
        verify_tls=False,
    ),
    Provider.TELEBIRR: ProviderProfile(
        provider=Provider.TELEBIRR,
        display_name="telebirr",
        receipt_url="https://telebirr.com/receipt?transactionNo={reference}",
        transport=Transport.PAGE_TEXT,
        contract=InputContract(requires_suffix=False, accepts_file=False),
        # Uploads are refused, so the pipeline never resolves these from a file
        reference_patterns=(
            r'Invoice\s*No\.?\s*:?\s*([A-Z0-9]{8,14})\b',
            r'\b(?=[A-Z0-9]*\d)([A-Z]{2,4}[A-Z0-9]{6,10})\b',
        ),
        mandatory_fields=('reference', 'amount'),
        rules=TELEBIRR_RULES,
        date_formats=("%d-%m-%Y %H:%M:%S", "%d-%m-%Y %H:%M", "%d/%m/%Y %H:%M:%S"),
    ),
    Provider.DASHEN: ProviderProfile(
        provider=Provider.DASHEN,
        display_name="Dashen Bank",
        receipt_url="https://receipt.dashensuperapp.com/receipt/{reference}",
        transport=Transport.DIRECT_DOCUMENT,
        contract=InputContract(requires_suffix=False, accepts_file=True),
        reference_patterns=(
            r'Transaction\s*Reference\s*:?\s*([A-Z0-9\-]{10,})',
            r'\b(?=[A-Z0-9]*\d)(?=[A-Z0-9]*[A-Z])([A-Z0-9]{10,})\b',
        ),
        mandatory_fields=('reference', 'amount', 'date'),
        rules=DASHEN_RULES,
        date_formats=DAY_FIRST_FORMATS,
        verify_tls=False,
    ),
    Provider.ABYSSINIA: ProviderProfile(
        provider=Provider.ABYSSINIA,
        display_name="Bank of Abyssinia",
        receipt_url="https://cs.bankofabyssinia.com/slip/?trx={reference}{suffix}",
        transport=Transport.BROWSER_DOWNLOAD,
        contract=InputContract(requires_suffix=True, accepts_file=True),
        reference_patterns=(
            r'Transaction\s*Reference\s*:?\s*(FT[A-Z0-9]{10})',
            r'\b(FT[A-Z0-9]{10})\b',
        ),
        mandatory_fields=('receiver', 'receiver_account', 'reference', 'amount', 'date'),
        rules=ABYSSINIA_RULES,
        date_formats=(
            "%d/%m/%y %H:%M",
            "%d/%m/%y %H:%M:%S",
            "%d/%m/%Y %H:%M",
            "%d/%m/%Y %H:%M:%S",
        ),
        download_control="Download PDF",
    ),
    Provider.MPESA: ProviderProfile(
        provider=Provider.MPESA,
        display_name="M-PESA",
        receipt_url="https://m-pesabusiness.safaricom.et/receipt/{reference}",
        transport=Transport.BROWSER_RESPONSE,
        contract=InputContract(requires_suffix=False, accepts_file=True),
        reference_patterns=(r'\b(UBH[A-Z0-9]{6,})\b',),
        mandatory_fields=('reference', 'amount', 'date'),
        rules=MPESA_RULES,
        date_formats=("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"),
        ocr_languages="eng+amh",
        verify_tls=False,
    ),
    Provider.AWASH: ProviderProfile(
        provider=Provider.AWASH,
        display_name="Awash Bank",
        receipt_url="https://online.awashbank.com/receipt/{reference}",
        transport=Transport.DIRECT_DOCUMENT,
        contract=InputContract(requires_suffix=False, accepts_file=True),
        reference_patterns=(
            r'Transaction\s*Reference\s*:?\s*([A-Z0-9\-]{8,})',
            r'\b(?=[A-Z0-9]*\d)(?=[A-Z0-9]*[A-Z])([A-Z0-9]{8,})\b',
        ),
        mandatory_fields=('reference', 'amount', 'date'),
        rules=AWASH_RULES,
        date_formats=DAY_FIRST_FORMATS,
        verify_tls=False,
    ),
})
