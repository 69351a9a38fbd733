import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from clipverse.utils.exceptions import ValidationError


def allowed_image(filename):
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return ext in current_app.config.get("ALLOWED_IMAGE_EXTENSIONS", {"jpg", "jpeg", "png"})


def save_image(file, folder_key, owner_id):
    """Store an uploaded image under ``<folder>/<owner_id>/`` and return its relative path."""
    if not file or not file.filename:
        return None
    if not allowed_image(file.filename):
        raise ValidationError(
            "Only image files are allowed!",
            details={"field": file.name},
            status=400,
        )

    root = current_app.config.get(folder_key)
    owner_root = os.path.join(root, str(owner_id))
    os.makedirs(owner_root, exist_ok=True)

    filename = secure_filename(file.filename)
    unique = f"{uuid.uuid4().hex}_{filename}"
    file.save(os.path.join(owner_root, unique))

    prefix = os.path.basename(os.path.normpath(root))
    return f"{prefix}/{owner_id}/{unique}"
