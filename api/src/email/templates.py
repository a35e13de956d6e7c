# ruff: noqa: E501 - inline-styled HTML email markup
"""Email templates for AulaFlow.

HTML is table-based with inline styles so it renders in webmail clients.
Every renderer returns ``(html, plain_text)``.
"""

from datetime import datetime
from html import escape


MONTHS_PT = (
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
)


# ==============================================================================
# Base Template
# ==============================================================================

BASE_TEMPLATE = """
<!DOCTYPE html>
<html lang="pt-BR">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title} - AulaFlow</title>
</head>
<body style="margin: 0; padding: 0; background-color: #F5F6FA; font-family: Arial, sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0">
    <tr>
      <td align="center" style="padding: 32px 16px;">
        <table role="presentation" width="600" cellpadding="0" cellspacing="0" style="max-width: 600px; background-color: #FFFFFF; border-radius: 10px;">
          <tr>
            <td style="padding: 32px 40px; text-align: center; background: linear-gradient(135deg, #667EEA 0%, #764BA2 100%); border-radius: 10px 10px 0 0;">
              <h1 style="margin: 0; font-size: 26px; color: #FFFFFF;">{heading}</h1>
            </td>
          </tr>
          <tr>
            <td style="padding: 32px 40px; color: #333333; font-size: 16px; line-height: 1.6;">
              {content}
            </td>
          </tr>
          <tr>
            <td style="padding: 20px 40px; background-color: #F9F9F9; border-radius: 0 0 10px 10px;">
              <p style="margin: 0; font-size: 12px; color: #888888; text-align: center;">
                &copy; {year} AulaFlow. Este email foi enviado automaticamente, por favor não responda.
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def format_date_pt(value: datetime) -> str:
    """Long Brazilian date, e.g. ``10 de março de 2024``."""
    return f"{value.day:02d} de {MONTHS_PT[value.month - 1]} de {value.year}"


# ==============================================================================
# Template: Certificate Issued
# ==============================================================================

CERTIFICATE_ISSUED_CONTENT = """
<p style="margin: 0 0 16px;">Olá <strong>{student_name}</strong>,</p>
<p style="margin: 0 0 16px;">Você completou 100% do curso:</p>

<div style="background-color: #FFFFFF; border: 1px solid #EEEEEE; border-radius: 8px; padding: 20px; margin: 20px 0; text-align: center;">
  <h2 style="margin: 0 0 12px; color: #667EEA;">{course_name}</h2>
  <p style="margin: 0; color: #666666;">
    <strong>Certificado:</strong> {code}<br>
    <strong>Data:</strong> {issue_date}
  </p>
</div>

<p style="margin: 0 0 24px;">
  Seu certificado já está disponível na plataforma.
  Acesse a área do aluno para visualizar e baixar.
</p>

<p style="text-align: center; margin: 0 0 24px;">
  <a href="{certificates_url}" style="background-color: #667EEA; color: #FFFFFF; padding: 14px 28px; text-decoration: none; border-radius: 8px; font-weight: bold; display: inline-block;">
    Ver Meu Certificado
  </a>
</p>

<p style="margin: 0; color: #888888; font-size: 14px; text-align: center;">
  Continue aprendendo e evoluindo!<br>
  Equipe AulaFlow
</p>
"""


def render_certificate_issued(
    student_name: str,
    course_name: str,
    code: str,
    issued_at: datetime,
    certificates_url: str,
) -> tuple[str, str]:
    """Render the course completion email.

    Args:
        student_name: Student display name
        course_name: Completed course title
        code: Certificate code (CERT-XXXXXX-YYYY)
        issued_at: Issue timestamp
        certificates_url: Link to the student's certificates page

    Returns:
        Tuple of (html_content, plain_text_content)
    """
    issue_date = format_date_pt(issued_at)
    content = CERTIFICATE_ISSUED_CONTENT.format(
        student_name=escape(student_name),
        course_name=escape(course_name),
        code=escape(code),
        issue_date=issue_date,
        certificates_url=escape(certificates_url, quote=True),
    )
    html = BASE_TEMPLATE.format(
        title="Certificado emitido",
        heading="Parabéns! Você concluiu o curso",
        content=content,
        year=issued_at.year,
    )

    plain_text = f"""
Parabéns, {student_name}!

Você completou 100% do curso: {course_name}

Certificado: {code}
Data: {issue_date}

Seu certificado já está disponível na área do aluno:
{certificates_url}

Continue aprendendo e evoluindo!
Equipe AulaFlow
"""

    return html, plain_text.strip()
