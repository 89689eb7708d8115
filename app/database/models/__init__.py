from app.database.models.user_model import User
from app.database.models.document_model import NotarizationDocument, OutputFile, StoredFile, RequesterInfoRecord
from app.database.models.status_tracking_model import StatusTracking
from app.database.models.request_signature_model import RequestSignature
from app.database.models.payment_model import Payment
from app.database.models.user_wallet_model import UserWallet, NFTItem

DOCUMENT_MODELS = [User, NotarizationDocument, StatusTracking, RequestSignature, Payment, UserWallet]
