# epubkit/src/epubkit/core/errors.py
"""
Taxonomie des erreurs.

- Erreurs structurelles: enregistrées (StructuralError), jamais levées
  entre modules; l'élément concerné est ignoré ou marqué absent.
- Erreurs d'E/S: OSError / zipfile.BadZipFile, propagées à l'appelant.
- Erreurs de format: EpubFormatError, interceptées à la frontière du document.
"""

from dataclasses import dataclass
from typing import List, Optional


class EpubError(Exception):
    """Erreur de base d'epubkit."""


class PathEscapeError(EpubError, ValueError):
    """Un segment '..' remonte au-dessus de la racine du conteneur."""


class ResourceUnavailableError(EpubError):
    """La ressource n'a ni contenu ni flux à ouvrir."""


class EpubFormatError(EpubError):
    """Un document ne correspond pas au dialecte attendu."""


@dataclass
class StructuralError:
    """Problème structurel récupéré localement (id manquant, href introuvable...)."""

    message: str
    resource_id: Optional[str] = None
    href: Optional[str] = None

    def __str__(self) -> str:
        return self.message


def record_error(
    errors: Optional[List[StructuralError]],
    logger,
    message: str,
    resource_id: Optional[str] = None,
    href: Optional[str] = None,
) -> StructuralError:
    """
    Journalise une erreur structurelle et l'ajoute à la liste fournie.

    Args:
        errors: Liste collectrice (peut être None)
        logger: Logger du module appelant
        message: Description de l'erreur
        resource_id: Id de la ressource concernée
        href: Href de la ressource concernée

    Returns:
        L'erreur créée
    """
    error = StructuralError(message, resource_id=resource_id, href=href)
    logger.error(message)
    if errors is not None:
        errors.append(error)
    return error
