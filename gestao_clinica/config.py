import os
from dotenv import load_dotenv

# Carrega as variáveis do arquivo .env (se existir)
load_dotenv()

DATABASE_NAME = os.getenv("CLINICA_DB_NAME", "clinica.db")

# Servidor central de sincronização
API_BASE_URL = os.getenv("CLINICA_API_URL", "http://localhost:8000")
TIMEOUT_SECONDS = float(os.getenv("CLINICA_SYNC_TIMEOUT", "10"))

# Tamanho máximo do log de erros (ring buffer)
MAX_ERROR_LOG_SIZE = int(os.getenv("CLINICA_MAX_ERROR_LOG_SIZE", "100"))
