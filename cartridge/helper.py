# cartridge/helper.py
from __future__ import annotations

import hashlib
from typing import Any

ZIP_DIR = "zip_dir"
EXTERNAL_CONTENT_FOLDER = "external_content"
MANIFEST = "imsmanifest.xml"
CC_EXTENSION = "imscc"
QTI_ZIP_EXTENSION = "zip"

COURSE_SETTINGS_DIR = "course_settings"
WIKI_FOLDER = "wiki_content"
WEB_RESOURCES_FOLDER = "web_resources"
ASSESSMENT_NON_CC_FOLDER = "non_cc_assessments"

# resource types written into <resource type="...">
WEBCONTENT = "webcontent"
LOR = "associatedcontent/imscc_xmlv1p1/learning-application-resource"
QTI_ASSESSMENT_TYPE = "imsqti_xmlv1p2/imscc_xmlv1p1/assessment"
QTI_PLAIN_TYPE = "imsqti_xmlv1p2"

CC_NAMESPACES = {
    "1.1.0": {
        "imscc": "http://www.imsglobal.org/xsd/imsccv1p1/imscp_v1p1",
        "lomimscc": "http://ltsc.ieee.org/xsd/imsccv1p1/LOM/manifest",
        "schema_location": "http://www.imsglobal.org/profile/cc/ccv1p1/ccv1p1_imscp_v1p2_v1p0.xsd",
    },
    "1.3.0": {
        "imscc": "http://www.imsglobal.org/xsd/imsccv1p3/imscp_v1p1",
        "lomimscc": "http://ltsc.ieee.org/xsd/imsccv1p3/LOM/manifest",
        "schema_location": "http://www.imsglobal.org/profile/cc/ccv1p3/ccv1p3_imscp_v1p2_v1p0.xsd",
    },
}
DEFAULT_CC_VERSION = "1.1.0"

QTI_NAMESPACE = "http://www.imsglobal.org/xsd/ims_qtiasiv1p2"
CANVAS_NAMESPACE = "http://canvas.instructure.com/xsd/cccv1p0"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"


def create_key(obj: Any, prepend: str = "") -> str:
    """
    Stable resource identifier: "g" + md5(prepend + asset_string).
    Accepts an asset string directly or anything with .asset_string.
    """
    asset = obj if isinstance(obj, str) else obj.asset_string
    return "g" + hashlib.md5((prepend + asset).encode("utf-8")).hexdigest()
