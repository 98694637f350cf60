import gzip
import shutil

import pytest

from clinvar_tsv import config

SAMPLE_XML = "test/data/ClinVarFullRelease_sample.xml"


@pytest.fixture(scope="session", autouse=True)
def env_config() -> config.Env:
    """
    Overrides clinvar_tsv.config values, so tests do not depend on the
    environment or a local dotenv file.
    """
    config._dotenv_values = {
        "CLINVAR_TSV_BUFFER_SIZE": "4096",
        "CLINVAR_TSV_QUEUE_DEPTH": "3",
        "CLINVAR_TSV_PROGRESS_INTERVAL": "60",
    }
    config.reset_env()
    return config.get_env()


@pytest.fixture
def sample_xml() -> str:
    return SAMPLE_XML


@pytest.fixture
def sample_xml_gz(tmp_path) -> str:
    path = tmp_path / "ClinVarFullRelease_sample.xml.gz"
    with open(SAMPLE_XML, "rb") as f_in, gzip.open(path, "wb") as f_out:
        shutil.copyfileobj(f_in, f_out)
    return str(path)


@pytest.fixture
def write_xml(tmp_path):
    """Returns a function writing an XML string to a file and returning its path."""

    def write(content: str, name: str = "input.xml") -> str:
        path = tmp_path / name
        data = content.encode("utf-8")
        if name.endswith(".gz"):
            data = gzip.compress(data)
        path.write_bytes(data)
        return str(path)

    return write
