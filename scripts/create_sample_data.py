#!/usr/bin/env python3
"""
Create a sample organization workbook for trying the controller variance engine.
"""

import pandas as pd
from pathlib import Path
import sys

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from utils.periods import MONTHS

TENANT_ID = "org-demo"


def create_sample_data(output_file: str = None) -> str:
    """Create sample ledger, budget and registry sheets covering 2023 and 2024."""

    companies = pd.DataFrame({
        'id': ['c1', 'c2', 'c3'],
        'name': ['Loja Alfa Comercio Ltda', 'Loja Beta Comercio Ltda', 'Holding Gama'],
        'nickname': ['Loja A', 'Loja B', 'Holding'],
        'kind': ['efetiva', 'efetiva', 'consolidadora'],
        'brand_id': ['b1', 'b1', None],
    })

    accounts = pd.DataFrame({
        'id': ['a1', 'a2', 'a3', 'a4', 'a5'],
        'name': [
            'Receita Bruta de Vendas',
            'Custo das Mercadorias Vendidas',
            'Despesa Administrativa',
            'Despesa com Pessoal',
            'Lucro Operacional',
        ],
        'code': ['3.1.01', '3.2.01', '4.1.01', '4.1.02', '5.1.01'],
        'account_type': ['receita', 'custo', 'despesa', None, 'margem'],
    })

    # Monthly base amounts per (account, company)
    base_amounts = {
        ('Receita Bruta de Vendas', 'Loja A'): (900000, 'C'),
        ('Receita Bruta de Vendas', 'Loja B'): (650000, 'C'),
        ('Custo das Mercadorias Vendidas', 'Loja A'): (540000, 'D'),
        ('Custo das Mercadorias Vendidas', 'Loja B'): (400000, 'D'),
        ('Despesa Administrativa', 'Loja A'): (60000, 'D'),
        ('Despesa Administrativa', 'Loja B'): (45000, 'D'),
        ('Despesa com Pessoal', 'Loja A'): (120000, 'D'),
        ('Lucro Operacional', 'Loja A'): (180000, 'C'),
        ('Lucro Operacional', 'Loja B'): (150000, 'C'),
    }

    ledger_rows = []
    for year in (2023, 2024):
        growth = 1.0 if year == 2023 else 1.08
        for month_index, month in enumerate(MONTHS):
            seasonal = 1 + 0.02 * (month_index % 4)
            for (account, company), (amount, nature) in base_amounts.items():
                department = 'VENDAS' if account.startswith('Receita') else None
                ledger_rows.append({
                    'organizacao_id': TENANT_ID,
                    'ano': year,
                    'mes': month,
                    'conta_dre': account,
                    'departamento': department,
                    'loja': company,
                    'valor': round(amount * growth * seasonal, 2),
                    'natureza': nature,
                })

    # An overrun to trigger a critical expense alert in March 2024
    ledger_rows.append({
        'organizacao_id': TENANT_ID, 'ano': 2024, 'mes': 'MARÇO',
        'conta_dre': 'Despesa Administrativa', 'departamento': None,
        'loja': 'Loja A', 'valor': 35000, 'natureza': 'D',
    })

    assumptions = pd.DataFrame({
        'id': ['p1', 'p2', 'p3', 'p4'],
        'name': [
            'Receita Bruta de Vendas',
            'Orcamento CMV',
            'Despesa Administrativa',
            'Despesa com Pessoal',
        ],
    })

    budget_targets = {'p1': 1700000, 'p2': 1000000, 'p3': 110000, 'p4': 125000}
    assumption_values = pd.DataFrame([
        {'premissa_id': pid, 'ano': 2024, 'mes': month, 'valor': value}
        for pid, value in budget_targets.items()
        for month in MONTHS
    ])

    # CMV budget only reaches the cost account through an explicit mapping
    mappings = pd.DataFrame({
        'id': ['m1'],
        'premissa_id': ['p2'],
        'conta_dre_id': ['a2'],
        'departamento_id': [None],
        'tipo_destino': ['conta_dre'],
    })

    benchmarks = pd.DataFrame({
        'conta_nome': ['Despesa Administrativa', 'Custo das Mercadorias Vendidas'],
        'valor': [100000, 950000],
    })

    output_path = Path(output_file) if output_file else Path(__file__).parent.parent / "data" / "raw" / "sample_organization.xlsx"
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
        pd.DataFrame(ledger_rows).to_excel(writer, sheet_name='ledger', index=False)
        assumptions.to_excel(writer, sheet_name='assumptions', index=False)
        assumption_values.to_excel(writer, sheet_name='assumption_values', index=False)
        mappings.to_excel(writer, sheet_name='mappings', index=False)
        benchmarks.to_excel(writer, sheet_name='benchmarks', index=False)
        companies.to_excel(writer, sheet_name='companies', index=False)
        accounts.to_excel(writer, sheet_name='accounts', index=False)

    print(f"Sample data created: {output_path}")
    print(f"Try: python src/main.py -i {output_path} -t {TENANT_ID} -y 2024 -m MARÇO")
    return str(output_path)


if __name__ == "__main__":
    create_sample_data(sys.argv[1] if len(sys.argv) > 1 else None)
